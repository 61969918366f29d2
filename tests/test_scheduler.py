"""Tests for the periodic cycle scheduler."""
from unittest.mock import MagicMock

from alerts.errors import TelemetryError
from telemetry.scheduler import CycleScheduler


def test_trigger_runs_cycle_and_calls_back():
    engine = MagicMock()
    engine.run_cycle.return_value = ["alert"]
    scheduler = CycleScheduler(engine, interval_seconds=60)
    seen = []
    scheduler.on_cycle(seen.append)

    assert scheduler.trigger() == ["alert"]
    assert seen == [["alert"]]


def test_failure_counts_and_resets():
    engine = MagicMock()
    engine.run_cycle.side_effect = [TelemetryError("down"), TelemetryError("down"), []]
    scheduler = CycleScheduler(engine)

    assert scheduler.trigger() is None
    assert scheduler.trigger() is None
    assert scheduler.consecutive_failures == 2
    assert scheduler.trigger() == []
    assert scheduler.consecutive_failures == 0


def test_failed_cycle_skips_callbacks():
    engine = MagicMock()
    engine.run_cycle.side_effect = RuntimeError("boom")
    scheduler = CycleScheduler(engine)
    callback = MagicMock()
    scheduler.on_cycle(callback)
    scheduler.trigger()
    callback.assert_not_called()


def test_callback_error_does_not_break_cycle():
    engine = MagicMock()
    engine.run_cycle.return_value = []
    scheduler = CycleScheduler(engine)
    scheduler.on_cycle(MagicMock(side_effect=ValueError("bad callback")))
    after = MagicMock()
    scheduler.on_cycle(after)

    assert scheduler.trigger() == []
    after.assert_called_once_with([])


def test_start_and_stop():
    engine = MagicMock()
    engine.run_cycle.return_value = []
    scheduler = CycleScheduler(engine, interval_seconds=3600)
    scheduler.start()
    assert scheduler.running
    scheduler.stop()
    assert not scheduler.running
    assert engine.run_cycle.called
