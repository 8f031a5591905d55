"""Single fixed-delay retry for transient token-endpoint failures.

Attempt 1 either succeeds, fails terminally (raised at once), or fails with
``TemporarilyUnavailable`` (HTTP 429/503). In the last case we wait a fixed
5 seconds and make attempt 2, whose outcome is final. ``Retry-After`` is not
consulted, so the worst case stays at two request timeouts plus 5 seconds.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from apptoken.errors import ExchangeError, TemporarilyUnavailable

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 5.0
MAX_ATTEMPTS = 2

T = TypeVar("T")


def call_with_single_retry(
    attempt: Callable[[int], T],
    *,
    delay: float = RETRY_DELAY_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``attempt(1)``, and ``attempt(2)`` only after a transient failure.

    The attempt number is passed so the caller can rebuild anything
    time-sensitive (the JWT) for the second try.
    """
    try:
        return attempt(1)
    except TemporarilyUnavailable as exc:
        logger.warning(
            "GitHub API temporarily unavailable (HTTP %s), retrying in %.0f seconds",
            exc.http_status,
            delay,
        )

    sleep(delay)

    try:
        return attempt(2)
    except ExchangeError as exc:
        exc.attempts = MAX_ATTEMPTS
        raise
