import logging
from dataclasses import dataclass
from typing import List

from git import GitCommandError

from .errors import RemoteBindError
from .workspace import Workspace

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Remote:
    name: str
    url: str

    def __repr__(self):
        # the url may embed the bot token
        return f"Remote(name={self.name!r})"


def bind_remotes(workspace: Workspace, remotes: List[Remote]) -> Workspace:
    """
    Add every remote to the workspace, then fetch them, both in the given order.
    Nothing is rolled back on failure, the half bound workspace is simply abandoned.
    """
    existing = {remote.name for remote in workspace.repo.remotes}
    for remote in remotes:
        if remote.name in existing:
            raise RemoteBindError(remote.name, "a remote with that name already exists")
        try:
            workspace.repo.create_remote(remote.name, remote.url)
        except GitCommandError as e:
            raise RemoteBindError(remote.name, f"git remote add exited with {e.status}") from e
        existing.add(remote.name)
        logger.info(f"Added remote '{remote.name}' to {workspace.slug}")

    for remote in remotes:
        try:
            workspace.repo.git.fetch(remote.name)
        except GitCommandError as e:
            raise RemoteBindError(remote.name, f"git fetch exited with {e.status}") from e
        logger.info(f"Fetched remote '{remote.name}'")
    return workspace
