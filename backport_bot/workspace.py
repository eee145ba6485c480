import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from git import Repo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotIdentity:
    name: str
    email: str


@dataclass
class Workspace:
    """A fresh clone owned by exactly one running job."""
    slug: str
    path: Path
    repo: Repo


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def prepare_workspace(slug: str, clone_url: str, default_branch: str, base_dir: Path, identity: BotIdentity) -> Workspace:
    """
    Clone slug into a brand new directory under base_dir/slug and leave it
    on an up to date default branch, with the bot's identity configured
    for this clone only.

    Any git failure (clone, checkout, pull) propagates: the job is over.
    """
    slug_dir = Path(base_dir) / slug
    slug_dir.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix="tmp-", dir=slug_dir))
    # Start from an empty directory even if mkdtemp handed us something used
    shutil.rmtree(path, ignore_errors=True)
    path.mkdir(parents=True)

    logger.info(f"Cloning {slug} into {path}")
    repo = Repo.clone_from(clone_url, path)

    # Clean up just in case the clone left anything behind
    repo.git.reset("--hard")
    for untracked in repo.untracked_files:
        _remove(path / untracked)

    repo.git.checkout(default_branch)
    repo.git.pull()

    with repo.config_writer() as writer:
        writer.set_value("user", "email", identity.email)
        writer.set_value("user", "name", identity.name)
        writer.set_value("commit", "gpgsign", "false")

    logger.info(f"Working directory for {slug} ready on {default_branch}")
    return Workspace(slug=slug, path=path, repo=repo)


def prune_workspaces(base_dir: Path, max_age: float, now: Optional[float] = None) -> List[Path]:
    """
    Remove workspace directories (and their scratch patch files) older than max_age seconds.

    Jobs never clean up after themselves, this is meant to be run out of band.
    Returns the removed paths.
    """
    base_dir = Path(base_dir)
    if not base_dir.is_dir():
        return []
    if now is None:
        now = time.time()

    removed = []
    for entry in sorted(base_dir.glob("*/*/tmp-*")):
        if now - entry.stat().st_mtime < max_age:
            continue
        logger.info(f"Removing stale workspace {entry}")
        _remove(entry)
        removed.append(entry)
    return removed
