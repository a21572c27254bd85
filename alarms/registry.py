from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, Iterator, List, Optional

from time_utils import DateRange, is_date_in_range, now_in_tz

from .alarm import Alarm, AlarmCallback
from .errors import AlarmNotFound, PersistenceError, RecordParseError
from .scheduler import AlarmScheduler
from .storage import AlarmFileStore

logger = logging.getLogger(__name__)


class AlarmRegistry:
    """Authoritative set of live alarms, kept in sync with the durable store.

    Construction reloads every saved record: future or recurring alarms are
    reinstated with their original id, stale one-shot alarms are purged.
    All calls are expected from a single control flow; scheduler callbacks
    reach the registry through ``AlarmScheduler.dispatch_pending``.
    """

    def __init__(
        self,
        store: AlarmFileStore,
        scheduler: AlarmScheduler,
        on_alarm_fired: Optional[AlarmCallback] = None,
        now_fn: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.scheduler = scheduler
        self.on_alarm_fired = on_alarm_fired
        self._now_fn = now_fn or (lambda: now_in_tz(None))
        self._alarms: Dict[str, Alarm] = {}
        self.load_saved_alarms()

    def load_saved_alarms(self) -> None:
        try:
            saved_ids = self.store.list()
        except PersistenceError as exc:
            logger.error("Failed to list saved alarms: %s", exc)
            return
        logger.info("Found %s saved alarms", len(saved_ids))

        for alarm_id in saved_ids:
            try:
                record = self.store.read(alarm_id)
            except (RecordParseError, PersistenceError) as exc:
                logger.warning("Skipping alarm record %s: %s", alarm_id, exc)
                continue
            if record is None:
                logger.warning("Alarm record %s vanished while loading", alarm_id)
                continue
            if record.id != alarm_id:
                # records are keyed by the name they are stored under
                logger.warning("Alarm record %s carries id %s, using %s", alarm_id, record.id, alarm_id)

            if record.date > self._now_fn() or record.recurrence:
                try:
                    self.add(record.date, record.recurrence, record.name, alarm_id)
                except (PersistenceError, ValueError) as exc:
                    logger.warning("Failed to reinstate alarm %s: %s", alarm_id, exc)
                continue

            try:
                self.store.delete(alarm_id)
                logger.info("Deleted stale alarm: %s", alarm_id)
            except PersistenceError as exc:
                logger.error("Failed to delete stale alarm %s: %s", alarm_id, exc)

    def add(
        self,
        date: datetime,
        recurrence: Optional[str] = None,
        name: Optional[str] = None,
        id: Optional[str] = None,
    ) -> Alarm:
        if id is not None and id in self._alarms:
            raise ValueError(f"Alarm {id} already exists")
        alarm = Alarm(self.store, self.scheduler, date, recurrence, name, id)
        alarm.save()
        alarm.arm()
        alarm.on_fired = self._handle_fired
        alarm.on_should_be_deleted = self._handle_should_be_deleted
        self._alarms[alarm.id] = alarm
        logger.info("Alarm %s scheduled for %s (name=%s, recurrence=%s)", alarm.id, alarm.date.isoformat(), name, recurrence)
        return alarm

    def get(
        self,
        name: Optional[str] = None,
        date_range: Optional[DateRange] = None,
        recurrence: Optional[str] = None,
    ) -> List[Alarm]:
        matches = [
            alarm
            for alarm in self._alarms.values()
            if (name is None or alarm.name == name)
            and (date_range is None or is_date_in_range(alarm.date, date_range))
            and (recurrence is None or alarm.recurrence == recurrence)
        ]
        return sorted(matches, key=lambda a: a.date)

    def get_by_id(self, alarm_id: str) -> Alarm:
        alarm = self._alarms.get(alarm_id)
        if alarm is None:
            raise AlarmNotFound(alarm_id)
        return alarm

    def delete_by_id(self, alarm_id: str) -> bool:
        try:
            alarm = self.get_by_id(alarm_id)
        except AlarmNotFound:
            logger.debug("Nothing to delete for %s", alarm_id)
            return False
        self._cleanup(alarm)
        del self._alarms[alarm_id]
        return True

    def delete_all(self) -> None:
        for alarm in list(self._alarms.values()):
            self._cleanup(alarm)
        self._alarms.clear()
        logger.info("Deleted all alarms")

    def destroy(self) -> None:
        """Cancel every scheduler handle but keep durable records for the next start."""
        for alarm in self._alarms.values():
            alarm.destroy()
        logger.info("Released %s alarm schedules", len(self._alarms))

    def _cleanup(self, alarm: Alarm) -> None:
        alarm.on_fired = None
        alarm.on_should_be_deleted = None
        try:
            alarm.delete()
        except PersistenceError as exc:
            logger.error("Failed to delete alarm record %s: %s", alarm.id, exc)

    def _handle_fired(self, alarm: Alarm) -> None:
        if self.on_alarm_fired:
            self.on_alarm_fired(alarm)

    def _handle_should_be_deleted(self, alarm: Alarm) -> None:
        self.delete_by_id(alarm.id)

    def __len__(self) -> int:
        return len(self._alarms)

    def __iter__(self) -> Iterator[Alarm]:
        return iter(list(self._alarms.values()))

    def __contains__(self, alarm_id: object) -> bool:
        return alarm_id in self._alarms
