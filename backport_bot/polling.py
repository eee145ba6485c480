import logging
import time
from typing import Callable, TypeVar

from .errors import NotReadyInTime

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll(
    probe: Callable[[], T],
    max_attempts: int,
    interval: float,
    description: str = "resource",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call probe until it returns something truthy, sleeping interval seconds between attempts.

    Args:
        probe: callable returning a falsy value while the resource is not ready.
               It is responsible for turning transient errors into "not ready".
        max_attempts: hard cap on the number of probe calls
        interval: seconds to sleep between two attempts
        description: what is being waited for, used in log lines and the error

    Returns the first truthy probe result.
    Raises NotReadyInTime once max_attempts probes came back empty.
    """
    for attempt in range(1, max_attempts + 1):
        logger.info(f"testing {description} - Attempt {attempt}/{max_attempts}")
        result = probe()
        if result:
            return result
        if attempt < max_attempts:
            sleep(interval)
    logger.warning(f"{description} wasn't ready fast enough, giving up")
    raise NotReadyInTime(description, max_attempts)
