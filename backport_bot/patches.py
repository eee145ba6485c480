import logging
import os
from typing import List

import requests
from git import GitCommandError

from .errors import PatchApplyError
from .workspace import Workspace

logger = logging.getLogger(__name__)

PATCH_REQUEST_TIMEOUT = 30


def patch_url(github_url: str, slug: str, pr_number: int, sha: str) -> str:
    return f"{github_url}/{slug}/pull/{pr_number}/commits/{sha}.patch"


def fetch_patches(github_url: str, slug: str, pr_number: int, shas: List[str]) -> List[bytes]:
    """
    Download the patch document of every commit, one after the other.
    The returned list keeps the order of shas, which is the order the commits must be replayed in.
    Patches are kept as raw bytes, whatever the encoding of the files they touch.
    """
    patches = []
    for i, sha in enumerate(shas, start=1):
        response = requests.get(patch_url(github_url, slug, pr_number, sha), timeout=PATCH_REQUEST_TIMEOUT)
        response.raise_for_status()
        patches.append(response.content)
        logger.info(f"Got patch ({i}/{len(shas)})")
    return patches


def apply_patches(
    workspace: Workspace,
    target_remote: str,
    target_branch: str,
    temp_branch: str,
    temp_remote: str,
    patches: List[bytes],
) -> Workspace:
    """
    Replay patches on a new temp_branch cut from target_remote/target_branch and push it to temp_remote.

    Every patch goes through `git am -3` so small differences around the
    changed lines get a three-way merge instead of a rejection. The first
    patch that still does not apply aborts everything: the branch stays as
    it is and nothing is pushed.
    """
    git = workspace.repo.git
    upstream = f"{target_remote}/{target_branch}"

    git.checkout(upstream)
    git.pull(target_remote, target_branch)
    git.checkout(upstream, b=temp_branch)

    patch_path = f"{workspace.path}.patch"
    for position, patch in enumerate(patches, start=1):
        with open(patch_path, "wb") as patch_file:
            patch_file.write(patch)
        try:
            git.am("-3", patch_path)
        except GitCommandError as e:
            logger.warning(f"Patch {position}/{len(patches)} does not apply on {upstream}: {e.stderr}")
            raise PatchApplyError(position, len(patches), f"git am exited with {e.status}") from e
        finally:
            os.remove(patch_path)
        logger.info(f"Applied patch ({position}/{len(patches)})")

    git.push(temp_remote, temp_branch, set_upstream=True)
    logger.info(f"Pushed {temp_branch} to {temp_remote}")
    return workspace
