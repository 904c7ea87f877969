"""SQLite storage adapter.

Implements the core HistoryStoragePort using a simple SQLite database.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from core.models import ChannelPreference, HistoryRecord


class SQLiteStorage:
    """Thin SQLite wrapper that satisfies the HistoryStoragePort contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create tables if they do not exist.

        Tables:
        - history: one row per dispatch, with optional user feedback
        - channel_preferences: learned score per channel
        """

        with self._connect() as conn:
            # history mirrors the in-memory ring buffer so learning survives
            # restarts. Fields:
            # - record_id: id assigned by the router (PRIMARY KEY)
            # - timestamp: local dispatch time, ISO-8601
            # - text: notification text used for similarity lookups
            # - channels: JSON list of channels the dispatch went to
            # - feedback: 'positive', 'negative' or NULL
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS history (
                    record_id INTEGER PRIMARY KEY,
                    timestamp TIMESTAMP NOT NULL,
                    text TEXT NOT NULL,
                    channels TEXT NOT NULL,
                    feedback TEXT
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS channel_preferences (
                    channel TEXT PRIMARY KEY,
                    score REAL NOT NULL,
                    sample_count INTEGER NOT NULL
                )
                """
            )

    def load_history(self, limit: int) -> list[HistoryRecord]:
        """Return the newest ``limit`` records, oldest first."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM history ORDER BY record_id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            HistoryRecord(
                record_id=int(row["record_id"]),
                timestamp=datetime.fromisoformat(row["timestamp"]),
                text=row["text"],
                channels=tuple(json.loads(row["channels"])),
                feedback=row["feedback"],
            )
            for row in reversed(rows)
        ]

    def append_history(self, record: HistoryRecord) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO history (record_id, timestamp, text, channels, feedback)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.record_id,
                    record.timestamp.isoformat(),
                    record.text,
                    json.dumps(list(record.channels)),
                    record.feedback,
                ),
            )

    def set_feedback(self, record_id: int, feedback: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "UPDATE history SET feedback = ? WHERE record_id = ?",
                (feedback, record_id),
            )

    def delete_history_before(self, cutoff: datetime) -> int:
        """Delete records older than ``cutoff`` and return the number removed."""

        with self._connect() as conn:
            cur = conn.execute(
                "DELETE FROM history WHERE timestamp < ?",
                (cutoff.isoformat(),),
            )
            return cur.rowcount

    def load_preferences(self) -> list[ChannelPreference]:
        with self._connect() as conn:
            rows = conn.execute("SELECT channel, score, sample_count FROM channel_preferences").fetchall()
        return [
            ChannelPreference(channel=row["channel"], score=float(row["score"]), sample_count=int(row["sample_count"]))
            for row in rows
        ]

    def save_preference(self, preference: ChannelPreference) -> None:
        """Upsert one channel preference."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO channel_preferences (channel, score, sample_count)
                VALUES (?, ?, ?)
                ON CONFLICT(channel) DO UPDATE SET
                    score = excluded.score,
                    sample_count = excluded.sample_count
                """,
                (preference.channel, preference.score, preference.sample_count),
            )
