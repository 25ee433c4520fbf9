"""Tempo bounds and the debounce timer that coalesces rapid tempo edits."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, Optional

from .config import MAX_TEMPO, MIN_TEMPO

__all__ = ["TempoDebouncer", "clamp_tempo", "wave_period_seconds"]

logger = logging.getLogger(__name__)


def clamp_tempo(value: float) -> int:
    """Clamp ``value`` into the supported BPM range instead of rejecting it.

    Infinities clamp to the nearest bound; NaN has no nearest bound and falls
    back to the slowest tempo.
    """

    value = float(value)
    if math.isnan(value):
        return MIN_TEMPO
    return int(round(min(MAX_TEMPO, max(MIN_TEMPO, value))))


def wave_period_seconds(bpm: float) -> int:
    """Animation period of the tempo-synced wave shown by the UI."""

    return math.ceil(360 / bpm)


class TempoDebouncer:
    """Single-deadline debounce timer.

    Each :meth:`submit` replaces the pending value and pushes the deadline out by
    ``quiet_period``. :meth:`poll` delivers the latest value exactly once after
    the quiet period has elapsed; intermediate values are dropped.
    """

    def __init__(
        self,
        quiet_period: float,
        on_settle: Callable[[int], None],
        *,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self.quiet_period = float(quiet_period)
        self._on_settle = on_settle
        self._time_source = time_source
        self._pending: Optional[int] = None
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> Optional[int]:
        return self._pending

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline

    def submit(self, value: int) -> None:
        if self._pending is not None:
            logger.debug("Tempo %s superseded by %s", self._pending, value)
        self._pending = value
        self._deadline = self._time_source() + self.quiet_period
        if self.quiet_period <= 0:
            self.flush()

    def poll(self) -> bool:
        """Fire if the deadline has passed. Returns ``True`` when a value settled."""

        if self._deadline is None or self._time_source() < self._deadline:
            return False
        return self.flush()

    def flush(self) -> bool:
        if self._pending is None:
            return False
        value = self._pending
        self.cancel()
        self._on_settle(value)
        return True

    def cancel(self) -> None:
        self._pending = None
        self._deadline = None
