"""
Tests for the trigger bus and the sweep scheduler.
"""
from datetime import datetime, timedelta

from secureheart_alerts.services.triggers import SweepScheduler, TriggerBus


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


def test_record_events_reach_their_handlers():
    bus = TriggerBus()
    seen = []
    bus.on_emergency_request_created(lambda rid: seen.append(("emergency", rid)))
    bus.on_link_request_created(lambda rid: seen.append(("link", rid)))

    bus.emit_emergency_request_created("n1")
    bus.emit_link_request_created("l1")

    assert seen == [("emergency", "n1"), ("link", "l1")]


def test_failing_handler_does_not_stop_the_others(caplog):
    bus = TriggerBus()
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    bus.on_emergency_request_created(broken)
    bus.on_emergency_request_created(seen.append)

    bus.emit_emergency_request_created("n1")

    assert seen == ["n1"]
    assert "failed on n1" in caplog.text


def test_scheduler_runs_jobs_at_their_interval():
    bus = TriggerBus()
    runs = []
    bus.on_schedule("links", timedelta(hours=6), lambda: runs.append("links"))
    bus.on_schedule("notifications", timedelta(hours=24), lambda: runs.append("notifications"))
    clock = Clock(datetime(2026, 3, 1, 0, 0))
    scheduler = SweepScheduler(bus, clock=clock)

    assert scheduler.run_pending() == ["links", "notifications"]
    clock.now += timedelta(hours=1)
    assert scheduler.run_pending() == []
    clock.now += timedelta(hours=5)
    assert scheduler.run_pending() == ["links"]
    clock.now += timedelta(hours=18)
    assert scheduler.run_pending() == ["links", "notifications"]
    assert runs.count("links") == 3


def test_failed_job_is_retried_next_slot():
    bus = TriggerBus()
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("store unavailable")

    schedule = bus.on_schedule("links", timedelta(hours=6), flaky)
    clock = Clock(datetime(2026, 3, 1, 0, 0))
    scheduler = SweepScheduler(bus, clock=clock)

    scheduler.run_pending()
    assert schedule.last_error == "store unavailable"

    clock.now += timedelta(hours=6)
    scheduler.run_pending()
    assert schedule.last_error is None
    assert len(attempts) == 2


def test_scheduler_thread_starts_and_stops():
    bus = TriggerBus()
    runs = []
    bus.on_schedule("links", timedelta(hours=6), lambda: runs.append(1))
    scheduler = SweepScheduler(bus, poll_seconds=0.01)

    scheduler.start()
    scheduler.stop()

    assert runs == [1]
