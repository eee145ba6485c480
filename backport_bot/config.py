import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import yaml
from github import GithubException, UnknownObjectException

from .errors import ConfigError

logger = logging.getLogger(__name__)

TARGET_LABEL_PREFIX = "target/"
MERGED_LABEL_PREFIX = "merged/"
REPO_CONFIG_PATH = ".github/config.yml"

DEFAULT_BOT_NAME = "Backport Bot"
DEFAULT_BOT_EMAIL = "backport-bot@users.noreply.github.com"
DEFAULT_BACKPORT_LABEL = "backport"
DEFAULT_GITHUB_URL = "https://github.com"

# Forking is asynchronous on GitHub's side, these bound how long we wait for it
FORK_POLL_ATTEMPTS = 20
FORK_POLL_INTERVAL = 5.0
JOB_START_DELAY = 5.0


@dataclass(frozen=True)
class Settings:
    github_token: str
    working_dir: Path
    bot_name: str = DEFAULT_BOT_NAME
    bot_email: str = DEFAULT_BOT_EMAIL
    backport_label: str = DEFAULT_BACKPORT_LABEL
    github_url: str = DEFAULT_GITHUB_URL
    fork_poll_attempts: int = FORK_POLL_ATTEMPTS
    fork_poll_interval: float = FORK_POLL_INTERVAL
    job_start_delay: float = JOB_START_DELAY


@dataclass(frozen=True)
class LabelPrefixes:
    target: str = TARGET_LABEL_PREFIX
    merged: str = MERGED_LABEL_PREFIX


def _number(environ: Mapping[str, str], name: str, default, cast):
    value = environ.get(name)
    if value is None or value == "":
        return default
    try:
        return cast(value)
    except ValueError:
        raise ConfigError(f"Environment variable {name} must be a number, got '{value}'")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build the process-wide settings from environment variables.

    GITHUB_TOKEN is mandatory: it is used for every API call and is embedded
    in the push URL of the bot's fork.
    """
    if environ is None:
        environ = os.environ

    token = environ.get("GITHUB_TOKEN")
    if not token:
        raise ConfigError("Please set the 'GITHUB_TOKEN' environment variable")

    working_dir = environ.get("BACKPORT_WORKING_DIR") or os.path.join(tempfile.gettempdir(), "backport-working")

    attempts = _number(environ, "BACKPORT_FORK_POLL_ATTEMPTS", FORK_POLL_ATTEMPTS, int)
    if attempts < 1:
        raise ConfigError("BACKPORT_FORK_POLL_ATTEMPTS must be at least 1")

    return Settings(
        github_token=token,
        working_dir=Path(working_dir),
        bot_name=environ.get("BACKPORT_BOT_NAME") or DEFAULT_BOT_NAME,
        bot_email=environ.get("BACKPORT_BOT_EMAIL") or DEFAULT_BOT_EMAIL,
        backport_label=environ.get("BACKPORT_LABEL") or DEFAULT_BACKPORT_LABEL,
        github_url=(environ.get("GITHUB_URL") or DEFAULT_GITHUB_URL).rstrip("/"),
        fork_poll_attempts=attempts,
        fork_poll_interval=_number(environ, "BACKPORT_FORK_POLL_INTERVAL", FORK_POLL_INTERVAL, float),
        job_start_delay=_number(environ, "BACKPORT_JOB_START_DELAY", JOB_START_DELAY, float),
    )


def get_label_prefixes(repo) -> LabelPrefixes:
    """
    Read targetLabelPrefix / mergedLabelPrefix from .github/config.yml of the repository.
    Missing file, missing keys or a broken file all fall back to the defaults.
    """
    try:
        contents = repo.get_contents(REPO_CONFIG_PATH)
    except UnknownObjectException:
        logger.debug(f"No {REPO_CONFIG_PATH} in {repo.full_name}, using default label prefixes")
        return LabelPrefixes()
    except GithubException as e:
        logger.warning(f"Failed to read {REPO_CONFIG_PATH} from {repo.full_name}: {e}")
        return LabelPrefixes()

    try:
        config = yaml.safe_load(contents.decoded_content) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Invalid YAML in {REPO_CONFIG_PATH} of {repo.full_name}: {e}")
        return LabelPrefixes()

    if not isinstance(config, dict):
        logger.warning(f"{REPO_CONFIG_PATH} of {repo.full_name} is not a mapping, ignoring it")
        return LabelPrefixes()

    return LabelPrefixes(
        target=config.get("targetLabelPrefix") or TARGET_LABEL_PREFIX,
        merged=config.get("mergedLabelPrefix") or MERGED_LABEL_PREFIX,
    )
