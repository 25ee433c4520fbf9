"""Audio previews for rendered progressions."""

from __future__ import annotations

import io

import numpy as np
import pretty_midi
from pydub import AudioSegment

__all__ = ["export_wav", "midi_to_audio", "midi_to_bytes"]


def midi_to_audio(midi: pretty_midi.PrettyMIDI, *, sample_rate: int = 22050) -> AudioSegment:
    """Synthesize ``midi`` with pretty_midi's sine synthesizer into a mono segment."""

    waveform = midi.synthesize(fs=sample_rate)
    if waveform.size == 0:
        return AudioSegment.silent(duration=500, frame_rate=sample_rate)

    peak = float(np.max(np.abs(waveform)))
    if peak > 0:
        waveform = waveform / peak * 0.8
    pcm = (waveform * 32767).astype(np.int16)
    return AudioSegment(pcm.tobytes(), frame_rate=sample_rate, sample_width=2, channels=1)


def midi_to_bytes(midi: pretty_midi.PrettyMIDI) -> bytes:
    buffer = io.BytesIO()
    midi.write(buffer)
    return buffer.getvalue()


def export_wav(audio: AudioSegment) -> bytes:
    buffer = io.BytesIO()
    audio.export(buffer, format="wav")
    return buffer.getvalue()
