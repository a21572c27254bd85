"""Durable alarm registry for the voice assistant."""

from .alarm import Alarm
from .errors import AlarmError, AlarmNotFound, PersistenceError, RecordParseError
from .registry import AlarmRegistry
from .scheduler import AlarmScheduler
from .storage import AlarmFileStore, AlarmRecord
