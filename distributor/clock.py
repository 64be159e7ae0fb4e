"""
clock.py - Time sources for the distributor

ManualClock is a logical clock for tests and simulations; it only moves
forward. SystemClock reads wall-clock seconds.
"""

from __future__ import annotations
import time

from .core import Timestamp


class ManualClock:
    """
    Logical clock advanced explicitly by the caller.

    Example:
        clock = ManualClock(1_700_000_000)
        clock.advance(604_800)   # one vesting period later
    """

    def __init__(self, start: Timestamp = 0):
        if not isinstance(start, int) or isinstance(start, bool) or start < 0:
            raise ValueError(f"start must be a non-negative int timestamp, got {start!r}")
        self._now = start

    def now(self) -> Timestamp:
        return self._now

    def advance(self, seconds: int) -> Timestamp:
        """
        Move the clock forward.

        Raises:
            ValueError: If seconds is not a non-negative int
        """
        if not isinstance(seconds, int) or isinstance(seconds, bool):
            raise ValueError(f"seconds must be an int, got {seconds!r}")
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards: advance({seconds!r})")
        self._now += seconds
        return self._now

    def set(self, timestamp: Timestamp) -> None:
        """
        Jump to an absolute time.

        Raises:
            ValueError: If timestamp is not an int or is before the current time
        """
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            raise ValueError(f"timestamp must be an int, got {timestamp!r}")
        if timestamp < self._now:
            raise ValueError(f"Cannot move time backwards: {timestamp} < {self._now}")
        self._now = timestamp


class SystemClock:
    """Wall-clock Unix seconds."""

    def now(self) -> Timestamp:
        return int(time.time())
