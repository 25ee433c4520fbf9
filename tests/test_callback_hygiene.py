"""Clock callbacks registered under an old layout must never fire."""

from __future__ import annotations

from conftest import segment

QUARTER = 192


def test_sentinel_from_previous_layout_is_cancelled(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("CM7")])
    transport = scheduler.transport
    old_start = scheduler.items[1].start
    fired = []
    transport.schedule(fired.append, old_start)

    scheduler.insert_segment(segment("Dm7"))
    scheduler.start()
    transport.advance(old_start + 1)

    assert fired == []


def test_each_mutation_drops_stale_callbacks(make_scheduler):
    scheduler = make_scheduler()
    (first,) = scheduler.import_sequence([segment("FM7")])
    transport = scheduler.transport

    for mutate in (
        lambda: scheduler.insert_segment(segment("Em7")),
        lambda: scheduler.import_sequence([segment("Dm7")]),
        lambda: scheduler.remove_segment(first),
        lambda: scheduler.set_tempo_now(120),
    ):
        fired = []
        transport.schedule(fired.append, 0)
        mutate()
        transport.stop()
        transport.start()
        transport.advance(1)
        assert fired == []


def test_activation_follows_the_playhead(make_scheduler):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("CM7")])
    scheduler.start()

    scheduler.transport.advance(4 * QUARTER + 10)
    assert scheduler.active_index == 1

    # crosses the loop boundary at eight beats and starts over
    scheduler.transport.advance(4 * QUARTER)
    assert scheduler.active_index == 0


def test_loop_notes_fire_once_after_repeated_recompute(make_scheduler, recorder):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7", amount="1")])
    for _ in range(3):
        scheduler.recompute()

    scheduler.start()
    scheduler.transport.advance(1)

    assert recorder.triggers == [(("F4",), float(QUARTER), 0.0)]


def test_loops_trigger_sink_in_pattern_order(make_scheduler, recorder):
    scheduler = make_scheduler()
    scheduler.import_sequence([segment("FM7"), segment("CM7", amount="1", kind="quick")])
    scheduler.start()

    scheduler.transport.advance(5 * QUARTER - 1)

    assert recorder.triggers == [
        (("F4",), 192.0, 0.0),
        (("A4",), 192.0, 192.0),
        (("C4",), 192.0, 384.0),
        (("E4",), 192.0, 576.0),
        (("C4", "E4", "G4", "B4"), 96.0, 768.0),
    ]


def test_mutation_from_inside_a_callback_cancels_the_rest(make_scheduler, recorder):
    scheduler = make_scheduler()
    first, second = scheduler.import_sequence([segment("FM7", amount="1"), segment("CM7", amount="1")])
    transport = scheduler.transport
    transport.schedule(lambda _t: scheduler.remove_segment(second), 0)
    scheduler.start()

    transport.advance(2 * QUARTER - 1)

    # the second segment's notes were cancelled before the playhead reached them
    assert [pitches for pitches, _, _ in recorder.triggers] == [("F4",)]
    assert scheduler.items == [first]


def test_mutation_inside_a_callback_keeps_the_rebuilt_schedule_playing(make_scheduler, recorder):
    scheduler = make_scheduler()
    first, second = scheduler.import_sequence([segment("FM7", amount="4"), segment("CM7", amount="1")])
    transport = scheduler.transport
    transport.schedule(lambda _t: scheduler.remove_segment(second), 0)
    scheduler.start()

    transport.advance(4 * QUARTER - 1)

    # notes re-registered by the removal still fire later in the same pass, the
    # slot that triggered it does not fire twice
    assert [pitches for pitches, _, _ in recorder.triggers] == [("F4",), ("A4",), ("C4",), ("E4",)]
    assert [time for _, _, time in recorder.triggers] == [0.0, 192.0, 384.0, 576.0]
    assert scheduler.items == [first]
