"""Watchdog monitors tick arrival gaps and emits alerts."""

from __future__ import annotations

import time
from typing import Callable


class FeedWatchdog:
    def __init__(
        self,
        max_gap_seconds: int,
        alert_fn: Callable[[str], None],
        clock: Callable[[], float] = time.time,
    ):
        self.max_gap_seconds = max_gap_seconds
        self.alert_fn = alert_fn
        self.clock = clock
        self._last_timestamp = clock()
        self._alerted = False

    def heartbeat(self) -> None:
        self._last_timestamp = self.clock()
        self._alerted = False

    @property
    def is_stale(self) -> bool:
        return self.clock() - self._last_timestamp > self.max_gap_seconds

    def check(self) -> bool:
        """Alert once per gap. Returns True while the feed is stale."""
        if not self.is_stale:
            return False
        if not self._alerted:
            self._alerted = True
            self.alert_fn("feed_gap_detected")
        return True
