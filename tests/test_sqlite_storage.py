from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from adapters.sqlite_storage import SQLiteStorage
from core.models import ChannelPreference, HistoryRecord

NOW = datetime(2024, 1, 1, 12, 0)


def _storage(tmp_path: Path) -> SQLiteStorage:
    storage = SQLiteStorage(str(tmp_path / "pulse.db"))
    storage.init_db()
    return storage


def test_history_round_trip_with_feedback(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    for i in range(1, 4):
        storage.append_history(
            HistoryRecord(record_id=i, timestamp=NOW + timedelta(minutes=i), text=f"event {i}", channels=("console", "email"))
        )
    storage.set_feedback(2, "negative")

    records = storage.load_history(limit=2)

    assert [record.record_id for record in records] == [2, 3]
    assert records[0].feedback == "negative"
    assert records[0].channels == ("console", "email")
    assert records[1].timestamp == NOW + timedelta(minutes=3)


def test_delete_history_before(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    storage.append_history(HistoryRecord(record_id=1, timestamp=NOW - timedelta(days=40), text="old", channels=("console",)))
    storage.append_history(HistoryRecord(record_id=2, timestamp=NOW, text="new", channels=("console",)))

    assert storage.delete_history_before(NOW - timedelta(days=30)) == 1
    assert [record.text for record in storage.load_history(limit=10)] == ["new"]


def test_preferences_upsert(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    storage.save_preference(ChannelPreference(channel="email", score=0.6, sample_count=1))
    storage.save_preference(ChannelPreference(channel="email", score=0.7, sample_count=2))

    assert storage.load_preferences() == [ChannelPreference(channel="email", score=0.7, sample_count=2)]


def test_init_db_is_idempotent(tmp_path: Path) -> None:
    storage = _storage(tmp_path)
    storage.init_db()
    assert storage.load_history(limit=10) == []
