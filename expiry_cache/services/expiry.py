"""Expiry timestamps and the arithmetic shared by both cache variants.

All instants are integer milliseconds since the epoch. Two values are
reserved and never produced by the clock arithmetic for a positive TTL.
"""

from __future__ import annotations

import time
from typing import Callable


# expires_at of a cache that never expires
NEVER_EXPIRES = 0
# expires_at of a cache expired by hand or created without data
ALREADY_EXPIRED = -1

TimeFn = Callable[[], int]


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def expires_in(ms: int, now: int, *, allow_never: bool = True) -> int:
    """Return the instant ``ms`` milliseconds after ``now``.

    With ``allow_never`` a duration of 0 maps to NEVER_EXPIRES instead of
    ``now``, which would already count as expired.
    """
    if allow_never and ms == 0:
        return NEVER_EXPIRES
    return now + ms


def is_past(expires_at: int, now: int) -> bool:
    return now >= expires_at


def remaining(expires_at: int, now: int) -> int:
    return max(0, expires_at - now)
