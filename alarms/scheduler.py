from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from queue import Empty, Queue
from threading import Event, Lock, Thread
from typing import Callable, Dict, Optional, Tuple

from croniter import CroniterBadDateError, croniter

from time_utils import ensure_tz, now_in_tz

logger = logging.getLogger(__name__)


def is_valid_recurrence(expr: str) -> bool:
    return isinstance(expr, str) and bool(expr) and croniter.is_valid(expr)


def next_occurrence(expr: str, after: datetime) -> Optional[datetime]:
    """Next cron instant strictly after ``after``, or None if the rule never matches again."""
    try:
        return croniter(expr, after).get_next(datetime)
    except CroniterBadDateError:
        return None


@dataclass
class _Entry:
    handle: str
    recurrence: Optional[str]
    on_fire: Callable[[bool], None]
    next_fire: Optional[datetime]
    cancelled: bool = False


class AlarmScheduler:
    """Fires scheduled entries from a background thread.

    The polling thread only queues due entries. Callbacks run from
    ``dispatch_pending`` on whichever thread owns the alarms, so owners never
    see a callback concurrently with their own calls.
    """

    def __init__(
        self,
        check_interval: float = 0.8,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.check_interval = max(0.2, check_interval)
        self._now_fn = now_fn or (lambda: now_in_tz(None))

        self._entries: Dict[str, _Entry] = {}
        self._lock = Lock()
        self._stop_event = Event()
        self._thread: Optional[Thread] = None
        self._events: "Queue[Tuple[_Entry, bool]]" = Queue()

    def start(self) -> None:
        self._stop_event.clear()
        self._thread = Thread(target=self._loop, name="alarm-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler started (check_interval=%.2fs)", self.check_interval)

    def shutdown(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
        self._thread = None

    def schedule(
        self,
        fire_at: datetime,
        recurrence: Optional[str],
        on_fire: Callable[[bool], None],
    ) -> str:
        if recurrence and not is_valid_recurrence(recurrence):
            raise ValueError(f"Invalid recurrence expression: {recurrence!r}")
        fire_at = ensure_tz(fire_at)
        first_fire: Optional[datetime] = fire_at
        if recurrence:
            now = self._now_fn()
            if fire_at <= now:
                first_fire = next_occurrence(recurrence, now) or fire_at
        entry = _Entry(
            handle=uuid.uuid4().hex,
            recurrence=recurrence,
            on_fire=on_fire,
            next_fire=first_fire,
        )
        with self._lock:
            self._entries[entry.handle] = entry
        logger.debug("Scheduled %s for %s (recurrence=%s)", entry.handle, first_fire, recurrence)
        return entry.handle

    def cancel(self, handle: str) -> bool:
        with self._lock:
            entry = self._entries.pop(handle, None)
            if entry is None:
                return False
            entry.cancelled = True
        logger.debug("Cancelled %s", handle)
        return True

    def next_fire_at(self, handle: str) -> Optional[datetime]:
        with self._lock:
            entry = self._entries.get(handle)
            return entry.next_fire if entry else None

    def pending_count(self) -> int:
        with self._lock:
            return sum(1 for e in self._entries.values() if e.next_fire is not None)

    def poll(self, now: Optional[datetime] = None) -> int:
        """Queue every entry that is due at ``now``. Returns how many were queued."""
        now = now or self._now_fn()
        queued = 0
        with self._lock:
            for entry in self._entries.values():
                if entry.next_fire is None or entry.next_fire > now:
                    continue
                following = None
                if entry.recurrence:
                    following = next_occurrence(entry.recurrence, max(now, entry.next_fire))
                entry.next_fire = following
                self._events.put((entry, following is None))
                queued += 1
        return queued

    def dispatch_pending(self, timeout: Optional[float] = None) -> int:
        """Run queued callbacks on the calling thread.

        Waits up to ``timeout`` seconds for the first event, then drains
        whatever else is queued without blocking.
        """
        handled = 0
        while True:
            try:
                if timeout and not handled:
                    entry, finished = self._events.get(timeout=timeout)
                else:
                    entry, finished = self._events.get_nowait()
            except Empty:
                return handled
            if entry.cancelled:
                continue
            if finished:
                with self._lock:
                    self._entries.pop(entry.handle, None)
            handled += 1
            try:
                entry.on_fire(finished)
            except Exception:
                logger.error("Alarm callback failed for %s", entry.handle, exc_info=True)

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.poll()
            self._stop_event.wait(self.check_interval)
