"""Pace playback so stream time keeps step with the wall clock."""

from __future__ import annotations

import time
from collections.abc import Callable

from .util import now_ms

TM_JITTER = 1000  # ms


class SyncClock:
    """Sleeps so that stream timestamps advance no faster than real time.

    A gap of ``jitter`` milliseconds or more between stream time and
    wall time restarts the reference point instead of sleeping.
    """

    def __init__(
        self,
        jitter: int = TM_JITTER,
        clock: Callable[[], int] = now_ms,
        sleep: Callable[[float], object] = time.sleep,
    ) -> None:
        self.jitter = jitter
        self._clock = clock
        self._sleep = sleep
        self._begin_rts: int | None = None
        self._begin_sys = 0

    def wait(self, rts_ms: int) -> int:
        """Wait until ``rts_ms`` is due; return the milliseconds slept."""
        if self._begin_rts is None:
            self._begin_rts = rts_ms
            self._begin_sys = self._clock()
            return 0
        cur_sys = self._clock()
        ahead = (rts_ms - self._begin_rts) - (cur_sys - self._begin_sys)
        if ahead >= self.jitter or ahead <= -self.jitter:
            self._begin_rts = rts_ms
            self._begin_sys = cur_sys
            return 0
        if ahead > 0:
            self._sleep(ahead / 1000)
            return ahead
        return 0