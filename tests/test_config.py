from __future__ import annotations

import logging

from rad_progression import config


def test_defaults_match_original_session():
    settings = config.ProgressionSettings()

    assert settings.tempo == 70
    assert settings.octave == 4
    assert settings.pattern_kind == "scale"
    assert (settings.default_amount, settings.default_single, settings.default_chord) == ("4", "4", "CM7")


def test_from_env_reads_overrides(monkeypatch):
    monkeypatch.setenv(config.TEMPO_ENV_VAR, "96")
    monkeypatch.setenv(config.OCTAVE_ENV_VAR, "3")
    monkeypatch.setenv(config.DEBOUNCE_ENV_VAR, "0.25")

    settings = config.ProgressionSettings.from_env()

    assert settings.tempo == 96
    assert settings.octave == 3
    assert settings.debounce_seconds == 0.25


def test_from_env_clamps_tempo():
    settings = config.ProgressionSettings.from_env({config.TEMPO_ENV_VAR: "400"})
    assert settings.tempo == config.MAX_TEMPO


def test_from_env_ignores_malformed_values(caplog):
    with caplog.at_level(logging.WARNING, logger="rad_progression.config"):
        settings = config.ProgressionSettings.from_env({config.PPQ_ENV_VAR: "lots", config.TEMPO_ENV_VAR: " "})

    assert settings.ppq == 192
    assert settings.tempo == 70
    assert config.PPQ_ENV_VAR in caplog.text


def test_with_tempo_returns_copy():
    base = config.ProgressionSettings()
    faster = base.with_tempo(120)

    assert faster.tempo == 120
    assert base.tempo == 70
