from __future__ import annotations

import json
import logging
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from time_utils import parse_timestamp

from .errors import PersistenceError, RecordParseError

logger = logging.getLogger(__name__)

RECORD_SUFFIX = ".json"


def new_alarm_id() -> str:
    return f"al_{uuid.uuid4().hex[:8]}"


@dataclass
class AlarmRecord:
    id: str
    date: datetime
    recurrence: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "recurrence": self.recurrence,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: dict, alarm_id: str = "?") -> "AlarmRecord":
        if not isinstance(data, dict):
            raise RecordParseError(alarm_id, "payload is not an object")
        record_id = data.get("id")
        date_raw = data.get("date")
        if not record_id or not date_raw:
            raise RecordParseError(alarm_id, "payload missing id/date fields")
        try:
            date = parse_timestamp(str(date_raw))
        except ValueError as exc:
            raise RecordParseError(alarm_id, f"bad date {date_raw!r}") from exc
        recurrence = data.get("recurrence") or None
        if recurrence is not None and not isinstance(recurrence, str):
            raise RecordParseError(alarm_id, f"bad recurrence {recurrence!r}")
        name = data.get("name")
        return cls(
            id=str(record_id),
            date=date,
            recurrence=recurrence,
            name=str(name) if name is not None else None,
        )


class AlarmFileStore:
    """One JSON file per alarm, named after the alarm id."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, alarm_id: str) -> Path:
        return self.directory / f"{alarm_id}{RECORD_SUFFIX}"

    def list(self) -> List[str]:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            names = sorted(p.name for p in self.directory.iterdir() if p.suffix == RECORD_SUFFIX)
        except OSError as exc:
            raise PersistenceError("*", f"cannot list {self.directory}: {exc}") from exc
        return [name[: -len(RECORD_SUFFIX)] for name in names]

    def read(self, alarm_id: str) -> Optional[AlarmRecord]:
        path = self._path(alarm_id)
        logger.debug("Reading %s", path)
        try:
            with path.open("r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RecordParseError(alarm_id, str(exc)) from exc
        except OSError as exc:
            raise PersistenceError(alarm_id, str(exc)) from exc
        return AlarmRecord.from_dict(payload, alarm_id=alarm_id)

    def write(self, record: AlarmRecord) -> None:
        path = self._path(record.id)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(record.id, str(exc)) from exc

    def delete(self, alarm_id: str) -> None:
        try:
            self._path(alarm_id).unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError(alarm_id, str(exc)) from exc
