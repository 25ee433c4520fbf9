"""Per-segment loop handles driven by the transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Protocol, Sequence, Tuple

from .transport import TransportClock

__all__ = [
    "PATTERN_KINDS",
    "NoteEvent",
    "NoteRecorder",
    "NoteSink",
    "NullSink",
    "SegmentLoop",
    "ValidationError",
    "build_loop",
]

QUICK_GATE = 0.5


class ValidationError(ValueError):
    """Raised when a segment descriptor breaks the single-digit or pattern rules."""


class NoteSink(Protocol):
    def trigger(self, pitches: Sequence[str], duration: float, time: float) -> None:
        ...


class NullSink:
    def trigger(self, pitches: Sequence[str], duration: float, time: float) -> None:
        return None


@dataclass
class NoteRecorder:
    """Sink that remembers every trigger, used for previews and tests."""

    triggers: List[Tuple[Tuple[str, ...], float, float]] = field(default_factory=list)

    def trigger(self, pitches: Sequence[str], duration: float, time: float) -> None:
        self.triggers.append((tuple(pitches), float(duration), float(time)))

    def clear(self) -> None:
        self.triggers.clear()


@dataclass(frozen=True)
class NoteEvent:
    pitch: str
    start: float
    duration: float


def _scale_step(pitches: Sequence[str], iteration: int) -> Tuple[Sequence[str], float]:
    return [pitches[iteration % len(pitches)]], 1.0


def _quick_step(pitches: Sequence[str], iteration: int) -> Tuple[Sequence[str], float]:
    return list(pitches), QUICK_GATE


_PATTERNS: Dict[str, Callable[[Sequence[str], int], Tuple[Sequence[str], float]]] = {
    "scale": _scale_step,
    "quick": _quick_step,
}

PATTERN_KINDS = tuple(_PATTERNS)


class SegmentLoop:
    """Controllable loop for one segment.

    ``start(at)`` lays ``repeat_count`` iterations of ``loop_length`` ticks on the
    transport beginning at ``at``. Each iteration hands its notes to the sink.
    The handle only ever clears callbacks it registered itself.
    """

    def __init__(
        self,
        pattern_kind: str,
        pitches: Sequence[str],
        subdivision: int,
        *,
        transport: TransportClock,
        sink: NoteSink | None = None,
    ) -> None:
        if pattern_kind not in _PATTERNS:
            raise ValidationError(f"Unknown pattern kind {pattern_kind!r}; expected one of {PATTERN_KINDS}")
        if not pitches:
            raise ValueError("A segment loop needs at least one pitch")
        self.pattern_kind = pattern_kind
        self.pitches = list(pitches)
        self.transport = transport
        self.sink: NoteSink = sink or NullSink()
        self.repeat_count = 1
        self.loop_length = transport.subdivision_ticks(subdivision)
        self.start_time: float | None = None
        self._event_ids: List[int] = []

    @property
    def started(self) -> bool:
        return self.start_time is not None

    def start(self, at_time: float) -> None:
        self.cancel()
        self.start_time = float(at_time)
        for iteration in range(self.repeat_count):
            at = self.start_time + iteration * self.loop_length
            self._event_ids.append(self.transport.schedule(self._make_callback(iteration), at))

    def cancel(self) -> None:
        for event_id in self._event_ids:
            self.transport.clear(event_id)
        self._event_ids.clear()
        self.start_time = None

    def _make_callback(self, iteration: int):
        def _fire(time: float) -> None:
            pitches, gate = _PATTERNS[self.pattern_kind](self.pitches, iteration)
            self.sink.trigger(pitches, self.loop_length * gate, time)

        return _fire

    def note_events(self) -> List[NoteEvent]:
        """Notes this loop plays from its start time, for offline rendering."""

        if self.start_time is None:
            return []
        events: List[NoteEvent] = []
        for iteration in range(self.repeat_count):
            pitches, gate = _PATTERNS[self.pattern_kind](self.pitches, iteration)
            at = self.start_time + iteration * self.loop_length
            events.extend(NoteEvent(pitch, at, self.loop_length * gate) for pitch in pitches)
        return events

    def __repr__(self) -> str:
        return (
            f"SegmentLoop({self.pattern_kind!r}, pitches={self.pitches}, repeat={self.repeat_count}, "
            f"length={self.loop_length:g}, start={self.start_time})"
        )


def build_loop(
    pattern_kind: str,
    pitches: Sequence[str],
    subdivision: int,
    *,
    transport: TransportClock,
    sink: NoteSink | None = None,
) -> SegmentLoop:
    return SegmentLoop(pattern_kind, pitches, subdivision, transport=transport, sink=sink)
