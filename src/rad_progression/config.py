"""Runtime configuration for the progression engine and Streamlit front end."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Callable, Mapping, TypeVar

logger = logging.getLogger(__name__)

TEMPO_ENV_VAR = "RAD_PROGRESSION_TEMPO"
OCTAVE_ENV_VAR = "RAD_PROGRESSION_OCTAVE"
DEBOUNCE_ENV_VAR = "RAD_PROGRESSION_DEBOUNCE"
PPQ_ENV_VAR = "RAD_PROGRESSION_PPQ"
SAMPLE_RATE_ENV_VAR = "RAD_PROGRESSION_SAMPLE_RATE"

MIN_TEMPO = 10
MAX_TEMPO = 200

EXPORT_FILENAME = "RAD-PROGRESSION.json"

DEFAULT_PROGRESSION: list[dict[str, str]] = [
    {"amount": "4", "single": "4", "chord": "FM7", "type": "scale"},
    {"amount": "4", "single": "4", "chord": "Em7", "type": "scale"},
    {"amount": "4", "single": "4", "chord": "Dm7", "type": "scale"},
    {"amount": "4", "single": "4", "chord": "CM7", "type": "scale"},
]

_T = TypeVar("_T")


@dataclass(frozen=True)
class ProgressionSettings:
    """Tunables shared by the scheduler, the transport and the app."""

    tempo: int = 70
    octave: int = 4
    pattern_kind: str = "scale"
    debounce_seconds: float = 0.5
    ppq: int = 192
    sample_rate: int = 22050
    default_amount: str = "4"
    default_single: str = "4"
    default_chord: str = "CM7"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ProgressionSettings":
        env = os.environ if environ is None else environ
        defaults = cls()
        tempo = _read(env, TEMPO_ENV_VAR, int, defaults.tempo)
        return cls(
            tempo=min(MAX_TEMPO, max(MIN_TEMPO, tempo)),
            octave=_read(env, OCTAVE_ENV_VAR, int, defaults.octave),
            debounce_seconds=max(0.0, _read(env, DEBOUNCE_ENV_VAR, float, defaults.debounce_seconds)),
            ppq=_read(env, PPQ_ENV_VAR, int, defaults.ppq),
            sample_rate=_read(env, SAMPLE_RATE_ENV_VAR, int, defaults.sample_rate),
        )

    def with_tempo(self, tempo: int) -> "ProgressionSettings":
        return replace(self, tempo=tempo)


def _read(env: Mapping[str, str], name: str, cast: Callable[[str], _T], default: _T) -> _T:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError:
        logger.warning("Ignoring %s=%r; falling back to %r", name, raw, default)
        return default
