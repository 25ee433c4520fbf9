"""Timeline layout and scheduling for chord-loop progressions."""

from __future__ import annotations

import dataclasses
import json
import logging
import re
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional

import pandas as pd
import pretty_midi

from .chords import ChordResolutionError, ChordResolver, resolve_chord
from .config import EXPORT_FILENAME, ProgressionSettings
from .loops import PATTERN_KINDS, NoteSink, SegmentLoop, ValidationError, build_loop
from .tempo import TempoDebouncer, clamp_tempo, wave_period_seconds
from .transport import Transport, TransportClock

__all__ = [
    "DESCRIPTOR_KEYS",
    "PlaybackState",
    "SegmentDescriptor",
    "TimelineItem",
    "TimelineScheduler",
    "ValidationError",
    "dumps_sequence",
    "loads_sequence",
]

logger = logging.getLogger(__name__)

DESCRIPTOR_KEYS = ("amount", "single", "chord", "type")

_SINGLE_DIGIT = re.compile(r"[1-9]")


@dataclass(frozen=True)
class SegmentDescriptor:
    """Serializable description of one segment, as read from or written to JSON."""

    amount: str
    single: str
    chord: str
    type: str = "scale"

    def to_dict(self) -> dict[str, str]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "SegmentDescriptor":
        if not isinstance(payload, Mapping):
            raise ValidationError(f"Segment descriptor must be an object, got {type(payload).__name__}")
        keys = set(payload)
        missing = [key for key in DESCRIPTOR_KEYS if key not in keys]
        unexpected = sorted(keys - set(DESCRIPTOR_KEYS))
        if missing or unexpected:
            raise ValidationError(
                f"Segment descriptor must carry exactly {list(DESCRIPTOR_KEYS)} "
                f"(missing={missing}, unexpected={unexpected})"
            )
        return cls(
            amount=str(payload["amount"]),
            single=str(payload["single"]),
            chord=str(payload["chord"]),
            type=str(payload["type"]),
        )

    def validate(self) -> None:
        if not (_SINGLE_DIGIT.fullmatch(self.amount) and _SINGLE_DIGIT.fullmatch(self.single)):
            raise ValidationError(f'The parameter "{self.amount}/{self.single}" is not valid')
        if self.type not in PATTERN_KINDS:
            raise ValidationError(f"Unknown pattern type {self.type!r}; expected one of {list(PATTERN_KINDS)}")


def _coerce_descriptor(value: SegmentDescriptor | Mapping[str, Any]) -> SegmentDescriptor:
    if isinstance(value, SegmentDescriptor):
        return value
    return SegmentDescriptor.from_dict(value)


def dumps_sequence(descriptors: Iterable[SegmentDescriptor | Mapping[str, Any]]) -> str:
    return json.dumps([_coerce_descriptor(d).to_dict() for d in descriptors], indent=4)


def loads_sequence(text: str) -> List[SegmentDescriptor]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Progression file is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ValidationError("Progression file must contain a JSON array of segments")
    return [SegmentDescriptor.from_dict(entry) for entry in payload]


@dataclass(eq=False)
class TimelineItem:
    """One playable segment. ``start``/``stop``/``position`` belong to the scheduler."""

    chord: str
    subdivision: int
    repeat_count: int
    pattern_kind: str
    pitches: List[str]
    loop: SegmentLoop
    start: float = 0.0
    stop: float = 0.0
    position: Optional[int] = None

    @property
    def duration(self) -> float:
        return self.stop - self.start

    def descriptor(self) -> SegmentDescriptor:
        return SegmentDescriptor(
            amount=str(self.repeat_count),
            single=str(self.subdivision),
            chord=self.chord,
            type=self.pattern_kind,
        )

    def __repr__(self) -> str:
        return (
            f"TimelineItem([{self.position}] {self.chord} {self.repeat_count}x1/{self.subdivision} "
            f"{self.pattern_kind} {self.start:g}->{self.stop:g})"
        )


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"


class TimelineScheduler:
    """Owns the ordered segments and keeps loops and the transport in step with them.

    Every structural or tempo change ends in :meth:`recompute`, which first
    cancels every pending transport callback and only then lays the sequence
    out again, so callbacks from an older layout can never fire.
    """

    def __init__(
        self,
        transport: TransportClock | None = None,
        *,
        settings: ProgressionSettings | None = None,
        resolver: ChordResolver = resolve_chord,
        sink: NoteSink | None = None,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or ProgressionSettings()
        self.transport = transport or Transport(self.settings.tempo, ppq=self.settings.ppq)
        self.resolver = resolver
        self.sink = sink
        self.state = PlaybackState.IDLE
        self.active_index: Optional[int] = None
        self.tempo = clamp_tempo(self.settings.tempo)
        self._items: List[TimelineItem] = []
        self._tempo_listeners: List[Callable[[int], None]] = []
        self._debouncer = TempoDebouncer(
            self.settings.debounce_seconds, self._apply_tempo, time_source=time_source
        )
        self.transport.set_tempo(self.tempo)
        self.recompute()

    # ── Sequence access ─────────────────────────────────────────────────────

    def __iter__(self) -> Iterator[TimelineItem]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[TimelineItem]:
        return list(self._items)

    @property
    def active_item(self) -> Optional[TimelineItem]:
        if self.active_index is None:
            return None
        return self._items[self.active_index]

    @property
    def total_ticks(self) -> float:
        return self._items[-1].stop if self._items else 0.0

    def duration(self, subdivision: int | str) -> float:
        """Length in transport ticks of one ``subdivision`` unit."""
        return self.transport.subdivision_ticks(int(subdivision))

    # ── Layout ──────────────────────────────────────────────────────────────

    def recompute(self) -> None:
        self.transport.cancel_all_scheduled()

        cursor = 0.0
        for position, item in enumerate(self._items):
            unit = self.duration(item.subdivision)
            item.start = cursor
            cursor += item.repeat_count * unit
            item.stop = cursor
            item.position = position

            item.loop.cancel()
            item.loop.repeat_count = item.repeat_count
            item.loop.loop_length = unit
            item.loop.start(item.start)

            self.transport.schedule(self._activator(item), item.start)

        if not self._items:
            self.active_index = None
        elif self.active_index is None:
            self.active_index = 0
        else:
            self.active_index = min(self.active_index, len(self._items) - 1)

        if self._items:
            self.transport.set_loop_region(self._items[-1].stop, True)
        else:
            self.transport.set_loop_region(0.0, False)

        logger.debug("Recomputed %d segments, loop end %s", len(self._items), self.total_ticks)

    def _activator(self, item: TimelineItem) -> Callable[[float], None]:
        def _activate(_time: float) -> None:
            if item.position is not None:
                self.active_index = item.position

        return _activate

    # ── Mutations ───────────────────────────────────────────────────────────

    def _build_item(self, descriptor: SegmentDescriptor) -> TimelineItem:
        descriptor.validate()
        pitches = self.resolver(descriptor.chord, self.settings.octave)
        subdivision = int(descriptor.single)
        loop = build_loop(
            descriptor.type,
            pitches,
            subdivision,
            transport=self.transport,
            sink=self.sink,
        )
        return TimelineItem(
            chord=descriptor.chord,
            subdivision=subdivision,
            repeat_count=int(descriptor.amount),
            pattern_kind=descriptor.type,
            pitches=list(pitches),
            loop=loop,
        )

    def insert_segment(self, descriptor: SegmentDescriptor | Mapping[str, Any]) -> TimelineItem:
        """Insert a segment right after the active one (or at the end) and focus it."""

        descriptor = _coerce_descriptor(descriptor)
        try:
            item = self._build_item(descriptor)
        except ChordResolutionError as exc:
            logger.warning("Skipping segment %s: %s", descriptor.chord, exc)
            raise

        index = len(self._items) if self.active_index is None else self.active_index + 1
        self._items.insert(index, item)
        self.active_index = index
        self.recompute()
        return item

    def remove_segment(self, item: TimelineItem) -> None:
        position = item.position
        if position is None or not 0 <= position < len(self._items) or self._items[position] is not item:
            raise ValueError(f"{item!r} is not part of this timeline")

        del self._items[position]
        item.loop.cancel()
        item.position = None

        if self.active_index is not None and position < self.active_index:
            self.active_index -= 1
        self.recompute()

    def remove_at(self, index: int) -> None:
        self.remove_segment(self._items[index])

    def import_sequence(self, descriptors: Iterable[SegmentDescriptor | Mapping[str, Any]]) -> List[TimelineItem]:
        """Append every valid descriptor in order, then lay the sequence out once."""

        added: List[TimelineItem] = []
        for entry in descriptors:
            try:
                item = self._build_item(_coerce_descriptor(entry))
            except (ValidationError, ChordResolutionError) as exc:
                logger.warning("Skipping imported segment %r: %s", entry, exc)
                continue
            self._items.append(item)
            added.append(item)
        self.recompute()
        return added

    def export_sequence(self) -> List[dict[str, str]]:
        return [item.descriptor().to_dict() for item in self._items]

    # ── Tempo ───────────────────────────────────────────────────────────────

    @property
    def wave_period(self) -> int:
        return wave_period_seconds(self.tempo)

    @property
    def pending_tempo(self) -> Optional[int]:
        return self._debouncer.pending

    def add_tempo_listener(self, listener: Callable[[int], None]) -> None:
        self._tempo_listeners.append(listener)

    def request_tempo(self, bpm: float) -> int:
        """Queue a tempo change; only the last request inside the quiet window applies."""

        value = clamp_tempo(bpm)
        self._debouncer.submit(value)
        return value

    def poll(self) -> bool:
        return self._debouncer.poll()

    def flush_tempo(self) -> bool:
        return self._debouncer.flush()

    def set_tempo_now(self, bpm: float) -> int:
        self._debouncer.cancel()
        value = clamp_tempo(bpm)
        self._apply_tempo(value)
        return value

    def _apply_tempo(self, bpm: int) -> None:
        self.tempo = bpm
        self.transport.set_tempo(bpm)
        for listener in self._tempo_listeners:
            listener(bpm)
        logger.debug("Tempo settled at %d BPM", bpm)
        self.recompute()

    # ── Playback ────────────────────────────────────────────────────────────

    @property
    def is_playing(self) -> bool:
        return self.state is PlaybackState.PLAYING

    def start(self) -> None:
        self.state = PlaybackState.PLAYING
        self.transport.stop()
        self.transport.start()
        logger.info("Playback started with %d segments at %d BPM", len(self._items), self.tempo)

    def stop(self) -> None:
        self.state = PlaybackState.IDLE
        self.active_index = len(self._items) - 1 if self._items else None
        self.transport.stop()
        logger.info("Playback stopped")

    def toggle(self) -> None:
        if self.is_playing:
            self.stop()
        else:
            self.start()

    def advance_seconds(self, seconds: float) -> None:
        """Let a pending tempo settle, then move the transport forward."""

        self.poll()
        self.transport.advance_seconds(seconds)

    # ── Views & persistence ─────────────────────────────────────────────────

    def to_dataframe(self) -> pd.DataFrame:
        columns = [
            "position",
            "chord",
            "type",
            "amount",
            "single",
            "start",
            "stop",
            "start_seconds",
            "stop_seconds",
        ]
        rows = [
            {
                "position": item.position,
                "chord": item.chord,
                "type": item.pattern_kind,
                "amount": item.repeat_count,
                "single": item.subdivision,
                "start": item.start,
                "stop": item.stop,
                "start_seconds": self.transport.ticks_to_seconds(item.start),
                "stop_seconds": self.transport.ticks_to_seconds(item.stop),
            }
            for item in self._items
        ]
        if not rows:
            return pd.DataFrame(columns=columns)
        return pd.DataFrame(rows, columns=columns)

    def to_pretty_midi(self, program: int = 4) -> pretty_midi.PrettyMIDI:
        """Render one pass through the progression at the current tempo."""

        if not self._items:
            raise ValueError("Cannot render an empty progression. Add segments first.")

        midi = pretty_midi.PrettyMIDI(initial_tempo=self.tempo)
        instrument = pretty_midi.Instrument(program=program, name="Progression")
        for item in self._items:
            for event in item.loop.note_events():
                start = self.transport.ticks_to_seconds(event.start)
                end = self.transport.ticks_to_seconds(event.start + event.duration)
                instrument.notes.append(
                    pretty_midi.Note(
                        velocity=80,
                        pitch=pretty_midi.note_name_to_number(event.pitch),
                        start=start,
                        end=end,
                    )
                )
        midi.instruments.append(instrument)
        return midi

    def to_json(self, path: Path) -> Path:
        path = Path(path)
        if path.is_dir():
            path = path / EXPORT_FILENAME
        path.write_text(dumps_sequence(self.export_sequence()))
        return path

    @classmethod
    def from_json(cls, path: Path, **kwargs: Any) -> "TimelineScheduler":
        scheduler = cls(**kwargs)
        scheduler.import_sequence(loads_sequence(Path(path).read_text()))
        return scheduler

    def __repr__(self) -> str:
        return (
            f"TimelineScheduler(segments={len(self._items)}, tempo={self.tempo}, "
            f"active={self.active_index}, state={self.state.value})"
        )
