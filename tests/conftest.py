import shutil
from pathlib import Path

import pytest
from git import Repo

from backport_bot.config import Settings


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


class RecordingQueue:
    """Stands in for JobQueue, keeps what was enqueued instead of running it."""

    def __init__(self):
        self.jobs = []

    def enqueue(self, action, on_failure, description="job"):
        self.jobs.append((action, on_failure, description))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        github_token="s3cr3t",
        working_dir=tmp_path / "work",
        fork_poll_attempts=3,
        fork_poll_interval=0,
        job_start_delay=0,
    )


@pytest.fixture
def recording_queue():
    return RecordingQueue()


def configure_identity(repo: Repo):
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")
        writer.set_value("commit", "gpgsign", "false")


def commit_file(repo: Repo, name: str, content: str, message: str) -> str:
    path = Path(repo.working_tree_dir) / name
    path.write_text(content)
    repo.git.add(name)
    repo.git.commit("-m", message)
    return repo.head.commit.hexsha


@pytest.fixture
def upstream(tmp_path):
    """
    A repository playing the role of the GitHub repo: `main` plus a
    `release-1.0` branch cut from it.
    """
    repo = Repo.init(tmp_path / "upstream")
    configure_identity(repo)
    repo.git.checkout("-b", "main")
    commit_file(repo, "a.txt", "".join(f"line {i}\n" for i in range(1, 11)), "Initial commit")
    repo.git.branch("release-1.0")
    return repo


@pytest.fixture
def fork_repo(tmp_path):
    return Repo.init(tmp_path / "fork.git", bare=True)
