from alarms.errors import PersistenceError, RecordParseError
from alarms.storage import AlarmFileStore
from config import load_config


def main():
    config = load_config()
    store = AlarmFileStore(config.alarms_dir)
    ids = store.list()
    print(f"Saved alarms in {config.alarms_dir}: {len(ids)}")
    for alarm_id in ids:
        try:
            record = store.read(alarm_id)
        except (RecordParseError, PersistenceError) as exc:
            print(f"[{alarm_id}] unreadable: {exc}")
            continue
        if record is None:
            continue
        print(
            f"[{record.id}] {record.date.isoformat()} "
            f"recurrence={record.recurrence or '-'} "
            f"name={record.name or '-'}"
        )


if __name__ == "__main__":
    main()
