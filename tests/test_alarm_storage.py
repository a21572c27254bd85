import json
from datetime import datetime, timezone

import pytest

from alarms.errors import RecordParseError
from alarms.storage import AlarmFileStore, AlarmRecord, new_alarm_id


def test_write_then_read_uses_one_file_per_alarm(tmp_path):
    store = AlarmFileStore(tmp_path / "alarms")
    record = AlarmRecord(
        id="al_0001",
        date=datetime(2025, 1, 1, 7, 30, tzinfo=timezone.utc),
        recurrence="30 7 * * 1-5",
        name="work",
    )

    store.write(record)

    assert (tmp_path / "alarms" / "al_0001.json").exists()
    assert store.list() == ["al_0001"]
    assert store.read("al_0001") == record


def test_list_ignores_foreign_files(tmp_path):
    store = AlarmFileStore(tmp_path)
    (tmp_path / "notes.txt").write_text("hi", encoding="utf-8")
    (tmp_path / "al_b.json").write_text("{}", encoding="utf-8")
    (tmp_path / "al_a.json").write_text("{}", encoding="utf-8")

    assert store.list() == ["al_a", "al_b"]


def test_list_creates_missing_directory(tmp_path):
    store = AlarmFileStore(tmp_path / "fresh")
    assert store.list() == []
    assert (tmp_path / "fresh").is_dir()


def test_read_missing_returns_none(tmp_path):
    assert AlarmFileStore(tmp_path).read("al_gone") is None


def test_read_corrupt_json_raises(tmp_path):
    (tmp_path / "al_bad.json").write_text("{oops", encoding="utf-8")
    with pytest.raises(RecordParseError):
        AlarmFileStore(tmp_path).read("al_bad")


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"id": "al_x"},
        {"date": "2025-01-01T07:00:00+00:00"},
        {"id": "al_x", "date": "next tuesday"},
        {"id": "al_x", "date": "2025-01-01T07:00:00+00:00", "recurrence": 5},
    ],
)
def test_invalid_payload_raises(payload):
    with pytest.raises(RecordParseError):
        AlarmRecord.from_dict(payload)


def test_optional_fields_and_timezone_handling():
    record = AlarmRecord.from_dict(
        {"id": "al_z", "date": "2025-01-01T07:00:00Z", "recurrence": "", "name": None}
    )
    assert record.date == datetime(2025, 1, 1, 7, 0, tzinfo=timezone.utc)
    assert record.recurrence is None
    assert record.name is None

    naive = AlarmRecord.from_dict({"id": "al_n", "date": "2025-01-01T07:00:00"})
    assert naive.date.tzinfo is not None


def test_delete_is_idempotent(tmp_path):
    store = AlarmFileStore(tmp_path)
    store.write(AlarmRecord(id="al_del", date=datetime(2025, 1, 1, tzinfo=timezone.utc)))

    store.delete("al_del")
    store.delete("al_del")

    assert store.list() == []


def test_written_payload_matches_record_format(tmp_path):
    store = AlarmFileStore(tmp_path)
    store.write(AlarmRecord(id="al_fmt", date=datetime(2025, 1, 1, 7, 0, tzinfo=timezone.utc)))

    payload = json.loads((tmp_path / "al_fmt.json").read_text(encoding="utf-8"))
    assert payload == {
        "id": "al_fmt",
        "date": "2025-01-01T07:00:00+00:00",
        "recurrence": None,
        "name": None,
    }
    assert not list(tmp_path.glob("*.tmp"))


def test_generated_ids_are_distinct():
    ids = {new_alarm_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("al_") for i in ids)
