"""Deadline-bounded polling."""

from __future__ import annotations

import time
from typing import Callable


def wait_until(
    condition: Callable[[], bool],
    *,
    timeout: float,
    interval: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """Poll `condition` until it returns True or `timeout` seconds pass.

    The condition is always evaluated at least once and once more at the
    deadline, so a zero timeout degenerates to a single check.
    """
    deadline = clock() + timeout
    while True:
        if condition():
            return True
        remaining = deadline - clock()
        if remaining <= 0:
            return False
        sleep(min(interval, remaining))
