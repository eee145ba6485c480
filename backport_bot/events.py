import logging
import re
from typing import List, Optional

from .backport import BackportTarget, backport_to_branch, backport_to_label
from .config import Settings, get_label_prefixes
from .job_queue import JobQueue

logger = logging.getLogger(__name__)

# "/backport to release-5.0" or "/backport release-5.0", one per line
COMMAND_PATTERN = re.compile(r"^[ \t]*/backport[ \t]+(?:to[ \t]+)?(\S+)[ \t\r]*$", re.IGNORECASE | re.MULTILINE)


def parse_backport_commands(comment_body: Optional[str]) -> List[str]:
    branches = []
    for match in COMMAND_PATTERN.finditer(comment_body or ""):
        branch = match.group(1)
        if branch.lower() == "to" or branch in branches:
            continue
        branches.append(branch)
    return branches


def handle_pull_request(gh, settings: Settings, payload: dict, job_queue: Optional[JobQueue] = None) -> List[BackportTarget]:
    action = payload.get("action")
    pr = payload["pull_request"]
    slug = payload["repository"]["full_name"]

    if not pr.get("merged"):
        logger.info(f"PR #{pr['number']} in {slug} is not merged yet, nothing to backport")
        return []

    if action == "labeled":
        target = backport_to_label(gh, settings, slug, pr["number"], payload["label"]["name"], job_queue)
        return [target] if target else []

    if action == "closed":
        # Labels put on the PR before it was merged are only acted upon now
        prefixes = get_label_prefixes(gh.get_repo(slug))
        targets = []
        for label in pr.get("labels", []):
            if not label["name"].startswith(prefixes.target):
                continue
            target = backport_to_label(gh, settings, slug, pr["number"], label["name"], job_queue, prefixes)
            if target:
                targets.append(target)
        return targets

    logger.info(f"Ignoring pull_request action '{action}'")
    return []


def handle_issue_comment(gh, settings: Settings, payload: dict, job_queue: Optional[JobQueue] = None) -> List[BackportTarget]:
    if payload.get("action") != "created":
        return []
    issue = payload["issue"]
    slug = payload["repository"]["full_name"]

    branches = parse_backport_commands(payload["comment"].get("body"))
    if not branches:
        return []
    if "pull_request" not in issue:
        logger.info(f"#{issue['number']} in {slug} is an issue, not a pull request, ignoring backport command")
        return []

    pr = gh.get_repo(slug).get_pull(issue["number"])
    if not pr.merged:
        logger.info(f"PR #{pr.number} in {slug} is not merged, ignoring backport command")
        return []

    targets = []
    for branch in branches:
        target = backport_to_branch(gh, settings, slug, pr.number, branch, job_queue)
        if target:
            targets.append(target)
    return targets


def handle_event(
    gh, settings: Settings, event_name: str, payload: dict, job_queue: Optional[JobQueue] = None
) -> List[BackportTarget]:
    """
    Route a GitHub webhook / Actions event to the backport entry points.
    Returns the backports that were queued; unrelated events queue nothing.
    """
    if event_name in ("pull_request", "pull_request_target"):
        return handle_pull_request(gh, settings, payload, job_queue)
    if event_name == "issue_comment":
        return handle_issue_comment(gh, settings, payload, job_queue)
    logger.info(f"Ignoring '{event_name}' event")
    return []
