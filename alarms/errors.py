from __future__ import annotations


class AlarmError(Exception):
    """Base class for alarm subsystem errors."""


class AlarmNotFound(AlarmError):
    def __init__(self, alarm_id: str):
        super().__init__(f"Alarm {alarm_id} not found")
        self.alarm_id = alarm_id


class RecordParseError(AlarmError):
    def __init__(self, alarm_id: str, reason: str):
        super().__init__(f"Cannot parse alarm record {alarm_id}: {reason}")
        self.alarm_id = alarm_id
        self.reason = reason


class PersistenceError(AlarmError):
    def __init__(self, alarm_id: str, reason: str):
        super().__init__(f"Storage failure for alarm {alarm_id}: {reason}")
        self.alarm_id = alarm_id
        self.reason = reason
