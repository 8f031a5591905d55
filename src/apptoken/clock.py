"""UTC time source for JWT timestamps.

GitHub rejects JWTs whose ``iat``/``exp`` disagree with its own clock, and a
broken CI host clock otherwise surfaces as an opaque 401. Reading the clock
is therefore checked before any key material is touched: a clock that cannot
be read raises ``ClockUnavailable``, one that reads an absurd date raises
``ClockImplausible`` with the offending value.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable

from apptoken.errors import ClockImplausible, ClockUnavailable

EPOCH_FLOOR = 1577836800  # 2020-01-01T00:00:00Z
EPOCH_CEILING = 4102444800  # 2100-01-01T00:00:00Z


def check_plausible(instant: float) -> int:
    """Return *instant* as integer seconds, or raise ClockImplausible."""
    if not math.isfinite(instant):
        raise ClockImplausible(instant, f"System clock returned a non-finite value: {instant!r}")

    seconds = int(instant)
    if not EPOCH_FLOOR <= seconds <= EPOCH_CEILING:
        raise ClockImplausible(
            instant,
            f"System clock reads {seconds} seconds since the epoch, outside "
            f"[{EPOCH_FLOOR}, {EPOCH_CEILING}]; check the host's time configuration",
        )
    return seconds


def now(source: Callable[[], float] = time.time) -> int:
    """Current UTC instant in whole seconds since the Unix epoch.

    Args:
        source: Epoch-seconds callable; ``time.time`` unless a test injects one.

    Raises:
        ClockUnavailable: The time facility raised instead of answering.
        ClockImplausible: The answer lies outside 2020-01-01 .. 2100-01-01.
    """
    try:
        raw = source()
    except (OSError, OverflowError, ValueError) as exc:
        raise ClockUnavailable(f"System clock could not be queried: {exc}") from exc
    return check_plausible(raw)
