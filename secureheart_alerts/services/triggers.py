"""
Trigger transport: record-created events and timed jobs.

Routers emit an event after writing an inbound record; the handlers registered
here run the processing logic. Timed jobs are driven by SweepScheduler.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EMERGENCY_REQUEST_CREATED = "emergency_request_created"
LINK_REQUEST_CREATED = "link_request_created"

RecordHandler = Callable[[str], Any]


@dataclass
class Schedule:
    name: str
    interval: timedelta
    handler: Callable[[], Any]
    next_run: Optional[datetime] = None
    last_error: Optional[str] = None


class TriggerBus:
    def __init__(self):
        self._handlers: Dict[str, List[RecordHandler]] = defaultdict(list)
        self.schedules: List[Schedule] = []

    def on_emergency_request_created(self, handler: RecordHandler) -> RecordHandler:
        self._handlers[EMERGENCY_REQUEST_CREATED].append(handler)
        return handler

    def on_link_request_created(self, handler: RecordHandler) -> RecordHandler:
        self._handlers[LINK_REQUEST_CREATED].append(handler)
        return handler

    def on_schedule(self, name: str, interval: timedelta, handler: Callable[[], Any]) -> Schedule:
        schedule = Schedule(name=name, interval=interval, handler=handler)
        self.schedules.append(schedule)
        return schedule

    def emit_emergency_request_created(self, request_id: str) -> None:
        self._emit(EMERGENCY_REQUEST_CREATED, request_id)

    def emit_link_request_created(self, request_id: str) -> None:
        self._emit(LINK_REQUEST_CREATED, request_id)

    def _emit(self, topic: str, record_id: str) -> None:
        for handler in self._handlers[topic]:
            try:
                handler(record_id)
            except Exception:
                logger.exception("Handler for %s failed on %s", topic, record_id)


class SweepScheduler:
    """Runs the bus schedules on a daemon thread; a failed job waits for its next slot."""

    def __init__(
        self,
        bus: TriggerBus,
        poll_seconds: float = 30.0,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.bus = bus
        self.poll_seconds = poll_seconds
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_pending(self) -> List[str]:
        now = self.clock()
        ran = []
        for schedule in self.bus.schedules:
            if schedule.next_run is not None and schedule.next_run > now:
                continue
            schedule.next_run = now + schedule.interval
            ran.append(schedule.name)
            try:
                schedule.handler()
                schedule.last_error = None
            except Exception as exc:
                schedule.last_error = str(exc)
                logger.exception("Scheduled job %s failed", schedule.name)
        return ran

    def _loop(self) -> None:
        while True:
            self.run_pending()
            if self._stop.wait(self.poll_seconds):
                return

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="sweep-scheduler", daemon=True)
        self._thread.start()
        logger.info("Sweep scheduler started with %s jobs", len(self.bus.schedules))

    def stop(self) -> None:
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=self.poll_seconds)
            self._thread = None
