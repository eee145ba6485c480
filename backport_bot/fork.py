import logging
import time
from typing import Callable

from github import GithubException
from requests.exceptions import RequestException

from .errors import ForkNotReadyError, NotReadyInTime
from .polling import poll

logger = logging.getLogger(__name__)


def create_fork(repo):
    """Ask GitHub to fork repo into the bot account. Returns the (possibly not yet usable) fork."""
    logger.info(f"forking {repo.full_name}")
    return repo.create_fork()


def fork_has_commits(fork) -> bool:
    # GitHub answers 404/409 until the fork has materialized and the connection may drop
    # in between, both only mean "not yet"
    try:
        return len(fork.get_commits().get_page(0)) > 0
    except (GithubException, RequestException) as e:
        logger.debug(f"fork {fork.full_name} not queryable yet: {e}")
        return False


def wait_for_fork(fork, max_attempts: int, interval: float, sleep: Callable[[float], None] = time.sleep):
    try:
        poll(lambda: fork_has_commits(fork), max_attempts, interval, description=f"fork {fork.full_name}", sleep=sleep)
    except NotReadyInTime as e:
        raise ForkNotReadyError(fork.full_name, e.attempts) from e
    logger.info(f"fork {fork.full_name} ready")
    return fork
