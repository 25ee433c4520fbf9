from __future__ import annotations

import pytest

from conftest import segment
from rad_progression.config import ProgressionSettings
from rad_progression.tempo import TempoDebouncer, clamp_tempo, wave_period_seconds


@pytest.mark.parametrize(
    "value, expected",
    [
        (5, 10),
        (10, 10),
        (70, 70),
        (200, 200),
        (999, 200),
        (-3, 10),
        (120.4, 120),
        (float("inf"), 200),
        (float("-inf"), 10),
        (float("nan"), 10),
    ],
)
def test_clamp_tempo(value, expected):
    assert clamp_tempo(value) == expected


@pytest.mark.parametrize("bpm, period", [(70, 6), (120, 3), (200, 2), (10, 36)])
def test_wave_period(bpm, period):
    assert wave_period_seconds(bpm) == period


def test_debouncer_coalesces_rapid_values(fake_time):
    settled = []
    debouncer = TempoDebouncer(0.5, settled.append, time_source=fake_time)

    debouncer.submit(80)
    fake_time.now = 0.3
    debouncer.submit(90)
    fake_time.now = 0.6
    debouncer.submit(100)

    fake_time.now = 1.0
    assert debouncer.poll() is False
    fake_time.now = 1.2
    assert debouncer.poll() is True
    assert debouncer.poll() is False
    assert settled == [100]
    assert debouncer.pending is None


def test_debouncer_flush_and_cancel(fake_time):
    settled = []
    debouncer = TempoDebouncer(10, settled.append, time_source=fake_time)

    debouncer.submit(90)
    debouncer.cancel()
    assert debouncer.flush() is False

    debouncer.submit(95)
    assert debouncer.flush() is True
    assert settled == [95]


def test_zero_quiet_period_applies_immediately(fake_time):
    settled = []
    TempoDebouncer(0, settled.append, time_source=fake_time).submit(120)
    assert settled == [120]


def test_scheduler_applies_only_the_last_tempo_once(make_scheduler, fake_time, monkeypatch):
    scheduler = make_scheduler(settings=ProgressionSettings(debounce_seconds=0.5))
    scheduler.import_sequence([segment("FM7"), segment("CM7")])
    heard = []
    scheduler.add_tempo_listener(heard.append)
    recomputes = []
    original = scheduler.recompute
    monkeypatch.setattr(scheduler, "recompute", lambda: (recomputes.append(True), original())[1])

    for bpm in (80, 95, 250):
        scheduler.request_tempo(bpm)
        fake_time.now += 0.1

    assert scheduler.pending_tempo == 200
    assert scheduler.poll() is False
    assert scheduler.tempo == 70

    fake_time.now += 0.5
    assert scheduler.poll() is True

    assert scheduler.tempo == 200
    assert scheduler.transport.bpm == 200
    assert heard == [200]
    assert recomputes == [True]
    assert scheduler.wave_period == 2


def test_initial_tempo_is_applied_without_debounce(make_scheduler):
    scheduler = make_scheduler(settings=ProgressionSettings(tempo=90))

    assert scheduler.tempo == 90
    assert scheduler.transport.bpm == 90
    assert scheduler.pending_tempo is None


def test_advance_seconds_lets_pending_tempo_settle(make_scheduler, fake_time):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7")])
    scheduler.request_tempo(120)
    fake_time.now = 1.0

    scheduler.start()
    scheduler.advance_seconds(0.1)

    assert scheduler.tempo == 120


def test_non_finite_tempo_requests_are_clamped(make_scheduler):
    scheduler = make_scheduler()

    assert scheduler.set_tempo_now(float("inf")) == 200
    assert scheduler.transport.bpm == 200
    assert scheduler.request_tempo(float("nan")) == 10
