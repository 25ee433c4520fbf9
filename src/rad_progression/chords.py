"""Chord symbol resolution backed by music21."""

from __future__ import annotations

import logging
import re
from typing import List, Protocol

import pretty_midi
from music21 import harmony

__all__ = ["ChordResolutionError", "ChordResolver", "resolve_chord"]

logger = logging.getLogger(__name__)

_ROOT_PATTERN = re.compile(r"^[A-G]")


class ChordResolutionError(ValueError):
    """Raised when a chord symbol cannot be turned into a pitch set."""


class ChordResolver(Protocol):
    def __call__(self, symbol: str, octave: int) -> List[str]:
        ...


def resolve_chord(symbol: str, octave: int = 4) -> List[str]:
    """Return ascending pretty_midi note names for ``symbol`` rooted in ``octave``.

    The lowest chord tone is placed in ``octave`` and the remaining tones keep the
    interval layout music21 produces, so ``resolve_chord("FM7", 4)`` yields
    ``["F4", "A4", "C5", "E5"]``.
    """

    text = (symbol or "").strip()
    if not _ROOT_PATTERN.match(text):
        raise ChordResolutionError(f"Chord symbol {symbol!r} does not start with a note name")

    try:
        chord_symbol = harmony.ChordSymbol(text)
        pitches = list(chord_symbol.pitches)
    except Exception as exc:  # music21 raises several unrelated exception types
        raise ChordResolutionError(f"Could not resolve chord symbol {symbol!r}: {exc}") from exc

    if not pitches:
        raise ChordResolutionError(f"Chord symbol {symbol!r} produced no pitches")

    lowest = pitches[0]
    base_midi = 12 * (octave + 1) + lowest.pitchClass
    names = [
        pretty_midi.note_number_to_name(int(round(base_midi + (p.ps - lowest.ps))))
        for p in pitches
    ]
    logger.debug("Resolved %s (octave %d) to %s", text, octave, names)
    return names
