"""
Wait-for-consistency helper.

The identity store (auth provider) writes profile rows asynchronously
after signup; callers that need the row poll a bounded number of times
instead of failing on the first miss.
"""
import logging
import time
from typing import Callable

logger = logging.getLogger(__name__)


def wait_for_consistency(
    check: Callable[[], bool],
    attempts: int = 5,
    delay: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll ``check`` until it returns truthy.

    Args:
        check: Zero-argument predicate.
        attempts: Maximum number of calls to ``check`` (at least one).
        delay: Fixed pause in seconds between attempts.
        sleep: Injectable sleep function.

    Returns:
        True once ``check`` succeeded, False when the budget is exhausted.
    """
    attempts = max(1, int(attempts))
    for attempt in range(attempts):
        if check():
            return True
        if attempt < attempts - 1 and delay > 0:
            sleep(delay)
    return False
