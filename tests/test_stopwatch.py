"""Tests for the stopwatch state machine."""

import gc
import time

import pytest

from timetrack.errors import ValidationError
from timetrack.services.stopwatch import LastSession, Stopwatch, StopwatchState

# Long enough that the ticker thread never fires during a test that ticks by hand
MANUAL = 3600.0


class Recorder:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def __call__(self, client_id, hours, description):
        self.calls.append((client_id, hours, description))
        if self.fail:
            raise RuntimeError("remote exploded")


def _wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


class TestTransitions:
    def test_start_requires_a_client(self, notices):
        with Stopwatch(Recorder(), notify=notices, interval=MANUAL) as sw:
            with pytest.raises(ValidationError):
                sw.start()
            assert sw.state is StopwatchState.IDLE

    def test_start_pause_reset(self, notices):
        with Stopwatch(Recorder(), notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            sw.start()
            assert sw.state is StopwatchState.RUNNING

            sw.tick()
            sw.tick()
            sw.pause()
            assert sw.state is StopwatchState.PAUSED
            assert sw.elapsed == 2
            assert sw.display == "00:00:02"

            sw.start()
            sw.tick()
            assert sw.elapsed == 3

            sw.reset()
            assert sw.state is StopwatchState.IDLE
            assert sw.display == "00:00:00"

    @pytest.mark.parametrize("ticks, running", [(0, False), (5, False), (5, True)])
    def test_reset_always_zeroes_display(self, notices, ticks, running):
        with Stopwatch(Recorder(), notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            sw.start()
            for _ in range(ticks):
                sw.tick()
            if not running:
                sw.pause()

            sw.reset()
            assert sw.elapsed == 0
            assert sw.display == "00:00:00"
            assert not sw.running

    def test_tick_listeners_get_each_value(self, notices):
        seen = []
        with Stopwatch(Recorder(), notify=notices, interval=MANUAL) as sw:
            sw.on_tick(seen.append)
            sw.select_client("c1")
            sw.start()
            sw.tick()
            sw.tick()
            sw.reset()
        assert seen == [1, 2, 0]


class TestTicker:
    """The real ticker thread, with a short interval."""

    def test_ticker_accumulates_and_stops_on_pause(self, notices):
        with Stopwatch(Recorder(), notify=notices, interval=0.01) as sw:
            sw.select_client("c1")
            sw.start()
            assert _wait_until(lambda: sw.elapsed >= 3)

            sw.pause()
            frozen = sw.elapsed
            time.sleep(0.05)
            assert sw.elapsed == frozen

    def test_leaving_the_block_cancels_the_ticker(self, notices):
        with Stopwatch(Recorder(), notify=notices, interval=0.01) as sw:
            sw.select_client("c1")
            sw.start()
            ticker = sw._ticker
        ticker.join(timeout=1)
        assert not ticker.is_alive()
        assert not sw.running

    def test_dropped_stopwatch_stops_its_ticker(self, notices):
        sw = Stopwatch(Recorder(), notify=notices, interval=0.01)
        sw.select_client("c1")
        sw.start()
        ticker = sw._ticker

        del sw
        gc.collect()
        ticker.join(timeout=1)
        assert not ticker.is_alive()


class TestSave:
    def test_save_converts_ticks_to_hours(self, notices):
        saver = Recorder()
        with Stopwatch(saver, notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            sw.start()
            for _ in range(90):
                sw.tick()

            assert sw.save("pairing") == 0.025
            assert saver.calls == [("c1", 0.025, "pairing")]
            assert sw.last_session == LastSession(client_id="c1", hours=0.025)
            assert sw.state is StopwatchState.IDLE
            assert sw.client_id is None

    def test_hours_are_rounded_to_four_places(self, notices):
        saver = Recorder()
        with Stopwatch(saver, notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            for _ in range(7):
                sw.tick()
            sw.save()
        assert saver.calls[0][1] == round(7 / 3600, 4) == 0.0019

    def test_save_with_nothing_elapsed_only_resets(self, notices):
        saver = Recorder()
        with Stopwatch(saver, notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            assert sw.save() is None
            assert saver.calls == []
            assert sw.client_id is None

    def test_failed_save_still_resets(self, notices):
        saver = Recorder(fail=True)
        with Stopwatch(saver, notify=notices, interval=MANUAL) as sw:
            sw.select_client("c1")
            sw.start()
            sw.tick()

            assert sw.save() is None
            assert sw.state is StopwatchState.IDLE
            assert sw.elapsed == 0
            assert sw.client_id is None
            assert sw.last_session is None
            assert ("error", "Could not save time") in [(n[0], n[1]) for n in notices]

    def test_save_goes_through_the_store(self, store, notices):
        client = store.add_client("Acme")
        with Stopwatch(store.add_time_session, notify=notices, interval=MANUAL) as sw:
            sw.select_client(client.id)
            sw.start()
            for _ in range(1800):
                sw.tick()
            sw.save("focus")

        saved = store.get_client(client.id)
        assert saved.total_hours == 0.5
        assert saved.sessions[0].description == "focus"


class TestRestartLast:
    def test_restart_reselects_and_runs_from_zero(self, notices):
        with Stopwatch(Recorder(), notify=notices, interval=MANUAL) as sw:
            assert sw.restart_last() is False

            sw.select_client("c1")
            sw.tick()
            sw.save()
            assert sw.client_id is None

            assert sw.restart_last() is True
            assert sw.client_id == "c1"
            assert sw.state is StopwatchState.RUNNING
            assert sw.elapsed == 0
