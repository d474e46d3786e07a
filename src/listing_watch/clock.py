"""Wall-clock helpers shared by breakers, the pipeline and the scheduler."""

from __future__ import annotations

import time
from typing import Callable

# Zero-argument callable returning wall-clock milliseconds
Clock = Callable[[], float]


def wall_clock_ms() -> float:
    """Return the current wall-clock time in milliseconds."""
    return time.time() * 1000
