from __future__ import annotations

from conftest import segment
from rad_progression.timeline import PlaybackState

QUARTER = 192


def test_start_restarts_transport_from_zero(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("CM7")])
    scheduler.start()
    scheduler.transport.advance(5 * QUARTER)

    scheduler.stop()
    scheduler.start()

    assert scheduler.state is PlaybackState.PLAYING
    assert scheduler.transport.state == "started"
    assert scheduler.transport.now() == 0


def test_stop_parks_active_pointer_on_last_segment(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("Em7"), segment("CM7")])
    scheduler.start()
    scheduler.transport.advance(1)
    assert scheduler.active_index == 0

    scheduler.stop()

    assert scheduler.state is PlaybackState.IDLE
    assert scheduler.active_index == 2
    assert scheduler.transport.state == "stopped"


def test_stop_on_empty_timeline_clears_active_pointer(make_scheduler):
    scheduler = make_scheduler()
    scheduler.start()
    scheduler.stop()

    assert scheduler.active_index is None


def test_toggle_switches_between_states(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7")])

    scheduler.toggle()
    assert scheduler.is_playing

    scheduler.toggle()
    assert not scheduler.is_playing
    assert scheduler.state is PlaybackState.IDLE


def test_insert_after_stop_appends_at_the_end(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("Em7")])
    scheduler.start()
    scheduler.stop()

    item = scheduler.insert_segment(segment("CM7"))

    assert item.position == 2
