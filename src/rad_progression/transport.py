"""Cooperative transport clock.

The transport is the single timing authority for a progression: it tracks a
position in ticks, converts between ticks and seconds at the current tempo,
fires scheduled callbacks and optionally loops over ``[0, loop_end)``.

Nothing here runs on a thread. The host advances time explicitly through
:meth:`Transport.advance` or :meth:`Transport.advance_seconds` (the Streamlit app
does this from wall-clock time on every rerun, tests do it step by step), and
callbacks run synchronously on the caller's stack.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol

__all__ = ["DEFAULT_PPQ", "ScheduledCallback", "Transport", "TransportClock"]

logger = logging.getLogger(__name__)

DEFAULT_PPQ = 192

ScheduledCallback = Callable[[float], None]


class TransportClock(Protocol):
    def now(self) -> float:
        ...

    def cancel_all_scheduled(self) -> None:
        ...

    def schedule(self, callback: ScheduledCallback, at_time: float) -> int:
        ...

    def clear(self, event_id: int) -> None:
        ...

    def set_tempo(self, bpm: float) -> None:
        ...

    def set_loop_region(self, end_time: float, enabled: bool) -> None:
        ...

    def subdivision_ticks(self, subdivision: int) -> float:
        ...

    def ticks_to_seconds(self, ticks: float) -> float:
        ...

    def advance_seconds(self, seconds: float) -> None:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


@dataclass
class _Event:
    event_id: int
    time: float
    callback: ScheduledCallback


class Transport:
    """Tick-based transport with a repeating loop region."""

    def __init__(self, bpm: float = 120, *, ppq: int = DEFAULT_PPQ) -> None:
        if ppq <= 0:
            raise ValueError(f"ppq must be positive, got {ppq}")
        self.ppq = ppq
        self._bpm = float(bpm)
        self._position = 0.0
        self._events: Dict[int, _Event] = {}
        self._ids = itertools.count(1)
        self._last_id = 0
        self.loop_end = 0.0
        self.loop_enabled = False
        self.state = "stopped"

    # ── Time authority ──────────────────────────────────────────────────────

    @property
    def bpm(self) -> float:
        return self._bpm

    def set_tempo(self, bpm: float) -> None:
        if bpm <= 0:
            raise ValueError(f"bpm must be positive, got {bpm}")
        self._bpm = float(bpm)
        logger.debug("Transport tempo set to %s BPM", bpm)

    def now(self) -> float:
        """Current position in ticks."""
        return self._position

    def subdivision_ticks(self, subdivision: int) -> float:
        """Length of one ``1/subdivision`` note, e.g. ``4`` -> a quarter note."""
        subdivision = int(subdivision)
        if subdivision <= 0:
            raise ValueError(f"subdivision must be positive, got {subdivision}")
        return 4 * self.ppq / subdivision

    def ticks_to_seconds(self, ticks: float) -> float:
        return ticks * 60.0 / (self._bpm * self.ppq)

    def seconds_to_ticks(self, seconds: float) -> float:
        return seconds * self._bpm * self.ppq / 60.0

    # ── Scheduling ──────────────────────────────────────────────────────────

    def schedule(self, callback: ScheduledCallback, at_time: float) -> int:
        event_id = next(self._ids)
        self._last_id = event_id
        self._events[event_id] = _Event(event_id, float(at_time), callback)
        return event_id

    def clear(self, event_id: int) -> None:
        self._events.pop(event_id, None)

    def cancel_all_scheduled(self) -> None:
        if self._events:
            logger.debug("Cancelling %d scheduled callbacks", len(self._events))
        self._events.clear()

    @property
    def pending(self) -> int:
        return len(self._events)

    def set_loop_region(self, end_time: float, enabled: bool) -> None:
        self.loop_end = float(end_time)
        self.loop_enabled = bool(enabled) and self.loop_end > 0
        self._rewind_past_loop_end()

    def _rewind_past_loop_end(self) -> None:
        if self.loop_enabled and self._position >= self.loop_end:
            self._position = 0.0

    # ── Playback ────────────────────────────────────────────────────────────

    def start(self) -> None:
        self.state = "started"

    def stop(self) -> None:
        self.state = "stopped"
        self._position = 0.0

    def advance_seconds(self, seconds: float) -> None:
        self.advance(self.seconds_to_ticks(seconds))

    def advance(self, ticks: float) -> None:
        """Move the position forward, firing callbacks due in the covered window."""

        if ticks < 0:
            raise ValueError(f"cannot advance by a negative amount ({ticks})")
        if self.state != "started":
            return

        remaining = float(ticks)
        while remaining > 0:
            # A callback may have shrunk the loop region behind the playhead.
            self._rewind_past_loop_end()
            begin = self._position
            end = begin + remaining
            wraps = self.loop_enabled and end >= self.loop_end
            if wraps:
                end = self.loop_end
            self._dispatch(begin, end)
            if self.state != "started":
                return
            remaining -= end - begin
            self._position = 0.0 if wraps else end
        self._rewind_past_loop_end()

    def _next_due(
        self, begin: float, end: float, fired: Optional[_Event], watermark: int
    ) -> Optional[_Event]:
        """Earliest registered event in ``[begin, end)`` ordered after ``fired``.

        Events scheduled at the instant that is currently firing are skipped when
        they were registered after that instant started, so a callback that
        rebuilds the schedule does not re-trigger the slot it is running in.
        """

        due: List[_Event] = []
        for event in self._events.values():
            if not begin <= event.time < end:
                continue
            if fired is not None:
                if event.time < fired.time:
                    continue
                if event.time == fired.time and not fired.event_id < event.event_id <= watermark:
                    continue
            due.append(event)
        return min(due, key=lambda event: (event.time, event.event_id), default=None)

    def _dispatch(self, begin: float, end: float) -> None:
        # Re-query after every callback: callbacks may clear or re-register events.
        fired: Optional[_Event] = None
        watermark = self._last_id
        while True:
            event = self._next_due(begin, end, fired, watermark)
            if event is None:
                return
            if fired is None or event.time > fired.time:
                watermark = self._last_id
            self._position = event.time
            event.callback(event.time)
            fired = event
            if self.state != "started":
                return

    def __repr__(self) -> str:
        return (
            f"Transport(bpm={self._bpm:g}, position={self._position:g}, state={self.state!r}, "
            f"loop_end={self.loop_end:g}, loop={self.loop_enabled})"
        )
