from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from time_utils import ensure_tz

from .errors import PersistenceError
from .scheduler import AlarmScheduler, is_valid_recurrence
from .storage import AlarmFileStore, AlarmRecord, new_alarm_id

logger = logging.getLogger(__name__)

AlarmCallback = Callable[["Alarm"], None]


class Alarm:
    """A live alarm: its durable record plus the scheduler handle that fires it.

    ``on_fired`` is called on every fire. ``on_should_be_deleted`` is called
    once, when a fire leaves nothing more to schedule (a one-shot alarm, or a
    recurrence that has run out of occurrences).
    """

    def __init__(
        self,
        store: AlarmFileStore,
        scheduler: AlarmScheduler,
        date: datetime,
        recurrence: Optional[str] = None,
        name: Optional[str] = None,
        id: Optional[str] = None,
    ):
        if recurrence and not is_valid_recurrence(recurrence):
            raise ValueError(f"Invalid recurrence expression: {recurrence!r}")
        self.store = store
        self.scheduler = scheduler
        self.record = AlarmRecord(
            id=id or new_alarm_id(),
            date=ensure_tz(date),
            recurrence=recurrence or None,
            name=name,
        )
        self.on_fired: Optional[AlarmCallback] = None
        self.on_should_be_deleted: Optional[AlarmCallback] = None
        self._handle: Optional[str] = None
        self._deletion_signalled = False

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def date(self) -> datetime:
        return self.record.date

    @property
    def recurrence(self) -> Optional[str]:
        return self.record.recurrence

    @property
    def name(self) -> Optional[str]:
        return self.record.name

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def next_fire_at(self) -> Optional[datetime]:
        if self._handle is None:
            return None
        return self.scheduler.next_fire_at(self._handle)

    def save(self) -> None:
        self.store.write(self.record)

    def arm(self) -> None:
        if self._handle is None:
            self._handle = self.scheduler.schedule(self.date, self.recurrence, self._on_fire)
            if self.recurrence:
                self._advance_date()

    def destroy(self) -> None:
        """Release the scheduler handle; the durable record stays."""
        if self._handle is not None:
            self.scheduler.cancel(self._handle)
            self._handle = None

    def delete(self) -> None:
        self.destroy()
        self.store.delete(self.id)
        logger.info("Deleted alarm: %s", self.id)

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        next_fire = self.next_fire_at
        data["next_fire_at"] = next_fire.isoformat() if next_fire else None
        return data

    def _on_fire(self, finished: bool) -> None:
        logger.info("Alarm %s fired (name=%s, finished=%s)", self.id, self.name, finished)
        if finished:
            self._handle = None
        elif self.recurrence:
            self._advance_date()
        if self.on_fired:
            try:
                self.on_fired(self)
            except Exception:
                logger.error("on_fired callback failed for %s", self.id, exc_info=True)
        if finished and not self._deletion_signalled:
            self._deletion_signalled = True
            if self.on_should_be_deleted:
                self.on_should_be_deleted(self)

    def _advance_date(self) -> None:
        next_fire = self.next_fire_at
        if next_fire is None or next_fire == self.record.date:
            return
        self.record.date = next_fire
        try:
            self.save()
        except PersistenceError as exc:
            logger.warning("Failed to save next occurrence of %s: %s", self.id, exc)

    def __repr__(self) -> str:
        return (
            f"Alarm(id={self.id!r}, date={self.date.isoformat()}, "
            f"recurrence={self.recurrence!r}, name={self.name!r})"
        )
