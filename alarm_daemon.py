import logging
import signal
from threading import Event

from alarms.alarm import Alarm
from alarms.registry import AlarmRegistry
from alarms.scheduler import AlarmScheduler
from alarms.storage import AlarmFileStore
from config import load_config, setup_logging

logger = logging.getLogger("alarmd")


def _on_alarm_fired(alarm: Alarm) -> None:
    label = alarm.name or "Alarm"
    logger.info("%s is ringing (id=%s)", label, alarm.id)


def main() -> None:
    config = load_config()
    setup_logging(config.log_level, config.log_dir)
    logger.info("Starting alarm daemon (storage=%s)", config.alarms_dir)

    stop_event = Event()

    def graceful_exit(signum, frame) -> None:  # pragma: no cover - signal handler
        logger.info("Shutting down (signal %s)", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, graceful_exit)
    signal.signal(signal.SIGTERM, graceful_exit)

    scheduler = AlarmScheduler(check_interval=config.check_interval_seconds)
    store = AlarmFileStore(config.alarms_dir)
    registry = AlarmRegistry(store, scheduler, on_alarm_fired=_on_alarm_fired)
    logger.info("%s alarms active", len(registry))

    scheduler.start()
    try:
        while not stop_event.is_set():
            scheduler.dispatch_pending(timeout=config.dispatch_timeout_seconds)
    finally:
        registry.destroy()
        scheduler.shutdown()
        logger.info("Alarm daemon stopped")


if __name__ == "__main__":
    main()
