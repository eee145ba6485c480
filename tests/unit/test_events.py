import pytest
from flexmock import flexmock

from backport_bot import events
from backport_bot.backport import BackportTarget
from backport_bot.config import LabelPrefixes
from backport_bot.events import handle_event, parse_backport_commands


def pull_request_payload(action, merged=True, labels=(), label=None):
    payload = {
        "action": action,
        "repository": {"full_name": "o/r"},
        "pull_request": {
            "number": 7,
            "merged": merged,
            "labels": [{"name": name} for name in labels],
        },
    }
    if label:
        payload["label"] = {"name": label}
    return payload


def comment_payload(body, is_pull_request=True, action="created"):
    issue = {"number": 7}
    if is_pull_request:
        issue["pull_request"] = {"url": "https://api.github.com/repos/o/r/pulls/7"}
    return {
        "action": action,
        "repository": {"full_name": "o/r"},
        "issue": issue,
        "comment": {"body": body},
    }


@pytest.mark.parametrize(
    "body,expected",
    [
        ("/backport to release-5.0", ["release-5.0"]),
        ("/backport release-5.0", ["release-5.0"]),
        ("LGTM\n/backport to 1.x\r\n/backport to 2.x\n/backport to 1.x", ["1.x", "2.x"]),
        ("please /backport to 1.x", []),
        ("/backport to", []),
        ("", []),
        (None, []),
    ],
)
def test_parse_backport_commands(body, expected):
    assert parse_backport_commands(body) == expected


def test_label_on_merged_pr_queues_backport(settings, recording_queue):
    target = BackportTarget("o/r", 7, "1.x", "target/1.x", "merged/1.x")
    flexmock(events).should_receive("backport_to_label").with_args(
        "gh", settings, "o/r", 7, "target/1.x", recording_queue
    ).and_return(target).once()

    payload = pull_request_payload("labeled", label="target/1.x")
    assert handle_event("gh", settings, "pull_request", payload, recording_queue) == [target]


def test_label_on_unmerged_pr_is_ignored(settings, recording_queue):
    flexmock(events).should_receive("backport_to_label").never()
    payload = pull_request_payload("labeled", merged=False, label="target/1.x")
    assert handle_event("gh", settings, "pull_request", payload, recording_queue) == []


def test_merge_backports_every_target_label_in_order(settings, recording_queue):
    gh = flexmock(get_repo=lambda slug: flexmock())
    flexmock(events).should_receive("get_label_prefixes").and_return(LabelPrefixes())
    queued = []

    def backport_to_label(gh, settings, slug, pr_number, label_name, job_queue, prefixes):
        queued.append(label_name)
        return BackportTarget(slug, pr_number, label_name.split("/", 1)[1])

    flexmock(events).should_receive("backport_to_label").replace_with(backport_to_label)

    payload = pull_request_payload("closed", labels=["bug", "target/1.x", "target/2.x"])
    targets = handle_event(gh, settings, "pull_request_target", payload, recording_queue)

    assert queued == ["target/1.x", "target/2.x"]
    assert [target.target_branch for target in targets] == ["1.x", "2.x"]


def test_merge_reads_repository_config_once(settings, recording_queue):
    repo = flexmock(full_name="o/r")
    repo.should_receive("get_contents").with_args(".github/config.yml").and_return(
        flexmock(decoded_content=b"targetLabelPrefix: bp/\nmergedLabelPrefix: done/\n")
    ).once()
    gh = flexmock(get_repo=lambda slug: repo)

    payload = pull_request_payload("closed", labels=["bp/1.x", "target/2.x", "bp/3.x"])
    targets = handle_event(gh, settings, "pull_request", payload, recording_queue)

    assert [(t.target_branch, t.label_to_add) for t in targets] == [("1.x", "done/1.x"), ("3.x", "done/3.x")]
    assert len(recording_queue.jobs) == 2


def test_closed_without_merge_does_nothing(settings, recording_queue):
    flexmock(events).should_receive("backport_to_label").never()
    payload = pull_request_payload("closed", merged=False, labels=["target/1.x"])
    assert handle_event("gh", settings, "pull_request", payload, recording_queue) == []


def test_backport_comment_on_merged_pr(settings, recording_queue):
    pr = flexmock(number=7, merged=True)
    gh = flexmock(get_repo=lambda slug: flexmock(get_pull=lambda number: pr))
    flexmock(events).should_receive("backport_to_branch").with_args(
        gh, settings, "o/r", 7, "1.x", recording_queue
    ).and_return(BackportTarget("o/r", 7, "1.x", None, "merged/1.x")).once()
    flexmock(events).should_receive("backport_to_branch").with_args(
        gh, settings, "o/r", 7, "2.x", recording_queue
    ).and_return(BackportTarget("o/r", 7, "2.x", None, "merged/2.x")).once()

    targets = handle_event(gh, settings, "issue_comment", comment_payload("/backport to 1.x\n/backport 2.x"), recording_queue)
    assert [target.target_branch for target in targets] == ["1.x", "2.x"]


def test_backport_comment_on_unmerged_pr_is_ignored(settings, recording_queue):
    pr = flexmock(number=7, merged=False)
    gh = flexmock(get_repo=lambda slug: flexmock(get_pull=lambda number: pr))
    flexmock(events).should_receive("backport_to_branch").never()
    assert handle_event(gh, settings, "issue_comment", comment_payload("/backport to 1.x"), recording_queue) == []


def test_backport_comment_on_issue_is_ignored(settings, recording_queue):
    flexmock(events).should_receive("backport_to_branch").never()
    payload = comment_payload("/backport to 1.x", is_pull_request=False)
    assert handle_event("gh", settings, "issue_comment", payload, recording_queue) == []


def test_edited_comment_is_ignored(settings, recording_queue):
    flexmock(events).should_receive("backport_to_branch").never()
    payload = comment_payload("/backport to 1.x", action="edited")
    assert handle_event("gh", settings, "issue_comment", payload, recording_queue) == []


def test_unrelated_event_is_ignored(settings, recording_queue):
    assert handle_event("gh", settings, "push", {}, recording_queue) == []
