"""
The three repository-mutating steps of a backport, addressed as commands.

Each command has its own options type, and run_command refuses anything it
does not know about, so a new step has to be added here explicitly.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Union

from .patches import apply_patches
from .remotes import Remote, bind_remotes
from .workspace import BotIdentity, Workspace, prepare_workspace


class Command(Enum):
    INIT_REPO = "init-repo"
    SET_UP_REMOTES = "set-up-remotes"
    BACKPORT = "backport"


@dataclass(frozen=True)
class InitRepoOptions:
    slug: str
    clone_url: str
    default_branch: str
    base_dir: Path
    identity: BotIdentity


@dataclass(frozen=True)
class RemotesOptions:
    workspace: Workspace
    remotes: List[Remote]


@dataclass(frozen=True)
class BackportOptions:
    workspace: Workspace
    target_remote: str
    target_branch: str
    temp_remote: str
    temp_branch: str
    patches: List[bytes]


RunnerOptions = Union[InitRepoOptions, RemotesOptions, BackportOptions]

_OPTIONS_TYPES = {
    Command.INIT_REPO: InitRepoOptions,
    Command.SET_UP_REMOTES: RemotesOptions,
    Command.BACKPORT: BackportOptions,
}


def run_command(command: Command, options: RunnerOptions) -> Workspace:
    expected = _OPTIONS_TYPES.get(command)
    if expected is None:
        raise ValueError(f"Unknown runner command: {command!r}")
    if not isinstance(options, expected):
        raise TypeError(f"{command.name} expects {expected.__name__}, got {type(options).__name__}")

    if command is Command.INIT_REPO:
        return prepare_workspace(
            options.slug, options.clone_url, options.default_branch, options.base_dir, options.identity
        )
    if command is Command.SET_UP_REMOTES:
        return bind_remotes(options.workspace, options.remotes)
    return apply_patches(
        options.workspace,
        options.target_remote,
        options.target_branch,
        options.temp_branch,
        options.temp_remote,
        options.patches,
    )
