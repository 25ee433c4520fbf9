from __future__ import annotations

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))

import pytest

from rad_progression.chords import ChordResolutionError
from rad_progression.loops import NoteRecorder
from rad_progression.timeline import TimelineScheduler

CHORD_TABLE = {
    "FM7": ["F", "A", "C", "E"],
    "Em7": ["E", "G", "B", "D"],
    "Dm7": ["D", "F", "A", "C"],
    "CM7": ["C", "E", "G", "B"],
}


def fake_resolve(symbol: str, octave: int) -> list[str]:
    if not symbol or symbol[0] not in "ABCDEFG":
        raise ChordResolutionError(f"bad chord {symbol!r}")
    names = CHORD_TABLE.get(symbol, ["C", "E", "G"])
    return [f"{name}{octave}" for name in names]


class FakeTime:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def recorder() -> NoteRecorder:
    return NoteRecorder()


@pytest.fixture
def fake_time() -> FakeTime:
    return FakeTime()


@pytest.fixture
def make_scheduler(recorder, fake_time):
    def _make(**kwargs) -> TimelineScheduler:
        kwargs.setdefault("resolver", fake_resolve)
        kwargs.setdefault("sink", recorder)
        kwargs.setdefault("time_source", fake_time)
        return TimelineScheduler(**kwargs)

    return _make


def segment(chord: str = "CM7", amount: str = "4", single: str = "4", kind: str = "scale") -> dict[str, str]:
    return {"amount": amount, "single": single, "chord": chord, "type": kind}
