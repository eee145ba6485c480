import logging
import re
import time
from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional
from urllib.parse import urlparse

from .config import LabelPrefixes, Settings, get_label_prefixes
from .fork import create_fork, wait_for_fork
from .job_queue import JobQueue, backport_queue
from .patches import fetch_patches
from .remotes import Remote
from .runner import BackportOptions, Command, InitRepoOptions, RemotesOptions, run_command
from .workspace import BotIdentity

logger = logging.getLogger(__name__)

TARGET_REMOTE = "target_repo"
FORK_REMOTE = "fork"

# GitHub stops listing the commits of a pull request at 250
MAX_COMMITS = 240

ISSUE_FIX_KEYWORDS = "close|closes|closed|fix|fixes|fixed|resolve|resolves|resolved"
NOTES_PATTERN = re.compile(r"^[ \t]*notes:[ \t]*\S.*$", re.IGNORECASE | re.MULTILINE)
NO_NOTES = "Notes: no-notes"
# Characters git refuses in branch names, plus the ".." and "@{" sequences.
# "/" goes too, so nothing in the title can start a new ref component.
REF_UNSAFE = re.compile(r"[\s\x00-\x1f\x7f:~^?*\[\\/]|\.\.+|@\{")

TOO_MANY_COMMITS_COMMENT = (
    "This PR has way too many commits to automatically backport, please do this manually"
)


@dataclass(frozen=True)
class BackportTarget:
    """Everything a single backport job needs to know, fixed when the job is queued."""
    slug: str
    pr_number: int
    target_branch: str
    label_to_remove: Optional[str] = None
    label_to_add: Optional[str] = None

    @property
    def description(self) -> str:
        return f'backport from PR #{self.pr_number} to "{self.target_branch}"'


class SlugLogger(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f"{self.extra['slug']}: {msg}", kwargs


def label_to_target_branch(label_name: str, prefix: str) -> Optional[str]:
    """
    'target/release-5.0' -> 'release-5.0' for the prefix 'target/'.
    Returns None when the label does not carry the prefix.
    """
    if not label_name.startswith(prefix):
        return None
    return label_name[len(prefix):]


def merged_label(target_branch: str, prefixes: LabelPrefixes) -> str:
    return f"{prefixes.merged}{target_branch}"


def create_backport_body(pr_number: int, pr_body: Optional[str], repo_html_url: str) -> str:
    """
    Body of the backport PR: a pointer to the original PR, the issue it closes
    (if it closes one of this repository's issues) and its release notes.
    """
    pr_body = pr_body or ""
    body = f"Backport of #{pr_number}\n\nSee that PR for details."

    issue_fix = re.compile(rf"\b({ISSUE_FIX_KEYWORDS}) ({re.escape(repo_html_url)}/issues/\d+)", re.IGNORECASE)
    issue_match = issue_fix.search(pr_body)
    if issue_match:
        body += f"\n\n{issue_match.group(0)}"

    notes = [match.group(0).strip() for match in NOTES_PATTERN.finditer(pr_body)]
    if notes:
        body += "\n\n" + "\n".join(notes)
    else:
        body += f"\n\n{NO_NOTES}"
    return body


def sanitize_title(title: str) -> str:
    return REF_UNSAFE.sub("-", title).lower()


def temp_branch_name(target_branch: str, title: str, now: Optional[float] = None) -> str:
    if now is None:
        now = time.time()
    return f"{target_branch}-bp-{sanitize_title(title)}-{int(now * 1000)}"


def fork_push_url(settings: Settings, fork) -> str:
    url = urlparse(f"{settings.github_url}/{fork.full_name}.git")
    return url._replace(netloc=f"{fork.owner.login}:{settings.github_token}@{url.netloc}").geturl()


def clone_url(settings: Settings, slug: str) -> str:
    return f"{settings.github_url}/{slug}.git"


def create_backport_pull(repo, pr, fork, temp_branch: str, target_branch: str):
    return repo.create_pull(
        title=f"{pr.title} (backport: {target_branch})",
        body=create_backport_body(pr.number, pr.body, pr.base.repo.html_url),
        head=f"{fork.owner.login}:{temp_branch}",
        base=target_branch,
        maintainer_can_modify=False,
    )


def run_backport(gh, settings: Settings, target: BackportTarget, sleep: Callable[[float], None] = time.sleep) -> None:
    log = SlugLogger(logger, {"slug": target.slug})
    log.info(f"Executing {target.description}")
    sleep(settings.job_start_delay)

    repo = gh.get_repo(target.slug)
    pr = repo.get_pull(target.pr_number)

    log.info(f"Getting rev list from: {pr.base.sha}..{pr.head.sha}")
    commits: List[str] = [commit.sha for commit in pr.get_commits()]
    if not commits:
        log.warning("Found no commits to backport, aborting")
        return
    if len(commits) >= MAX_COMMITS:
        log.warning(f"Way too many commits ({len(commits)})... Giving up")
        pr.create_issue_comment(TOO_MANY_COMMITS_COMMENT)
        return

    log.info("Setting up local repository")
    url = clone_url(settings, target.slug)
    workspace = run_command(Command.INIT_REPO, InitRepoOptions(
        slug=target.slug,
        clone_url=url,
        default_branch=repo.default_branch,
        base_dir=settings.working_dir,
        identity=BotIdentity(settings.bot_name, settings.bot_email),
    ))
    log.info("Working directory cleaned")

    fork = create_fork(repo)
    wait_for_fork(fork, settings.fork_poll_attempts, settings.fork_poll_interval, sleep=sleep)

    log.info("setting up remotes")
    run_command(Command.SET_UP_REMOTES, RemotesOptions(workspace, [
        Remote(TARGET_REMOTE, url),
        Remote(FORK_REMOTE, fork_push_url(settings, fork)),
    ]))

    log.info(f"Found {len(commits)} commits to backport, requesting details now")
    patches = fetch_patches(settings.github_url, target.slug, pr.number, commits)
    log.info("Got all commit info")

    temp_branch = temp_branch_name(target.target_branch, pr.title)
    log.info(f'Checking out target: "{TARGET_REMOTE}/{target.target_branch}" to temp: "{temp_branch}"')
    run_command(Command.BACKPORT, BackportOptions(
        workspace=workspace,
        target_remote=TARGET_REMOTE,
        target_branch=target.target_branch,
        temp_remote=FORK_REMOTE,
        temp_branch=temp_branch,
        patches=patches,
    ))
    log.info("Cherry pick success, pushed up to fork")

    log.info("Creating Pull Request")
    new_pr = create_backport_pull(repo, pr, fork, temp_branch, target.target_branch)
    log.info(f"Pull request created: {new_pr.html_url}")

    log.info("Adding breadcrumb comment")
    pr.create_issue_comment(
        f'We have automatically backported this PR to "{target.target_branch}", '
        f"please check out #{new_pr.number}"
    )

    if target.label_to_remove:
        log.info(f"Removing label '{target.label_to_remove}'")
        pr.remove_from_labels(target.label_to_remove)

    if target.label_to_add:
        log.info(f"Adding label '{target.label_to_add}'")
        pr.add_to_labels(target.label_to_add)

    new_pr.add_to_labels(settings.backport_label)
    log.info("Backport complete")


def report_failure(gh, target: BackportTarget) -> None:
    pr = gh.get_repo(target.slug).get_pull(target.pr_number)
    pr.create_issue_comment(
        f'An error occurred while attempting to backport this PR to "{target.target_branch}", '
        "you will need to perform this backport manually"
    )


def queue_backport(gh, settings: Settings, target: BackportTarget, job_queue: Optional[JobQueue] = None) -> None:
    if job_queue is None:
        job_queue = backport_queue
    logger.info(f'Queuing {target.description} for "{target.slug}"')
    job_queue.enqueue(
        partial(run_backport, gh, settings, target),
        partial(report_failure, gh, target),
        description=f"{target.description} for {target.slug}",
    )


def backport_to_label(
    gh,
    settings: Settings,
    slug: str,
    pr_number: int,
    label_name: str,
    job_queue: Optional[JobQueue] = None,
    prefixes: Optional[LabelPrefixes] = None,
) -> Optional[BackportTarget]:
    """
    Queue a backport for a `target/<branch>` label.
    Labels without the configured prefix, or with nothing after it, are ignored.
    The repository's prefixes are read unless the caller already has them.
    """
    if prefixes is None:
        prefixes = get_label_prefixes(gh.get_repo(slug))
    target_branch = label_to_target_branch(label_name, prefixes.target)
    if target_branch is None:
        logger.info(f"Label '{label_name}' does not begin with '{prefixes.target}'")
        return None
    if not target_branch:
        logger.info("Nothing to do")
        return None

    target = BackportTarget(
        slug=slug,
        pr_number=pr_number,
        target_branch=target_branch,
        label_to_remove=label_name,
        label_to_add=label_name.replace(prefixes.target, prefixes.merged, 1),
    )
    queue_backport(gh, settings, target, job_queue)
    return target


def backport_to_branch(
    gh, settings: Settings, slug: str, pr_number: int, target_branch: str, job_queue: Optional[JobQueue] = None
) -> Optional[BackportTarget]:
    target_branch = target_branch.strip()
    if not target_branch:
        logger.info("Nothing to do")
        return None
    prefixes = get_label_prefixes(gh.get_repo(slug))
    target = BackportTarget(
        slug=slug,
        pr_number=pr_number,
        target_branch=target_branch,
        label_to_add=merged_label(target_branch, prefixes),
    )
    queue_backport(gh, settings, target, job_queue)
    return target
