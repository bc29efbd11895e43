import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

from db.models import MEETING_COLUMNS, SCHEMA_SQL
from session.models import TranscriptSegment

_local = threading.local()


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class Database:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conns = getattr(_local, "conns", None)
        if conns is None:
            conns = _local.conns = {}
        conn = conns.get(self.db_path)
        if conn is None:
            conn = sqlite3.connect(str(self.db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conns[self.db_path] = conn
        return conn

    def _init_schema(self):
        conn = self._get_conn()
        conn.executescript(SCHEMA_SQL)
        conn.commit()

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        conn = self._get_conn()
        cursor = conn.execute(sql, params)
        conn.commit()
        return cursor

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        cursor = self._get_conn().execute(sql, params)
        row = cursor.fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        cursor = self._get_conn().execute(sql, params)
        return [dict(row) for row in cursor.fetchall()]

    def close(self):
        conns = getattr(_local, "conns", None) or {}
        conn = conns.pop(self.db_path, None)
        if conn is not None:
            conn.close()

    # -- Meetings --

    def create_meeting(self, title: str) -> int:
        cursor = self.execute(
            "INSERT INTO meetings (title, started_at) VALUES (?, ?)",
            (title, _now()),
        )
        return cursor.lastrowid

    def end_meeting(self, meeting_id: int):
        self.execute(
            "UPDATE meetings SET ended_at = ? WHERE id = ? AND ended_at IS NULL",
            (_now(), meeting_id),
        )

    def set_summary(self, meeting_id: int, summary: str):
        self.execute("UPDATE meetings SET summary = ? WHERE id = ?", (summary, meeting_id))

    def update_title(self, meeting_id: int, title: str) -> dict | None:
        self.execute("UPDATE meetings SET title = ? WHERE id = ?", (title, meeting_id))
        return self.get_meeting(meeting_id)

    def get_meeting(self, meeting_id: int) -> dict | None:
        return self.fetchone(f"SELECT {MEETING_COLUMNS} FROM meetings WHERE id = ?", (meeting_id,))

    def list_meetings(self, limit: int = 50, offset: int = 0) -> list[dict]:
        return self.fetchall(
            f"SELECT {MEETING_COLUMNS} FROM meetings ORDER BY started_at DESC, id DESC LIMIT ? OFFSET ?",
            (limit, offset),
        )

    def search_meetings(self, query: str, limit: int = 50) -> list[dict]:
        term = f"%{query}%"
        return self.fetchall(
            f"""
            SELECT {MEETING_COLUMNS} FROM meetings
            WHERE title LIKE ? OR summary LIKE ? OR id IN (
                SELECT meeting_id FROM transcript_segments WHERE text LIKE ?
            )
            ORDER BY started_at DESC, id DESC
            LIMIT ?
            """,
            (term, term, term, limit),
        )

    def delete_meeting(self, meeting_id: int) -> bool:
        cursor = self.execute("DELETE FROM meetings WHERE id = ?", (meeting_id,))
        return cursor.rowcount > 0

    # -- Transcript --

    def insert_segment(self, meeting_id: int, speaker: str, text: str,
                       timestamp_ms: int, is_user: bool, confidence: float) -> int:
        cursor = self.execute(
            """
            INSERT INTO transcript_segments
                (meeting_id, speaker, text, timestamp_ms, is_user, confidence)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (meeting_id, speaker, text, timestamp_ms, 1 if is_user else 0, confidence),
        )
        return cursor.lastrowid

    def get_transcript(self, meeting_id: int) -> list[TranscriptSegment]:
        rows = self.fetchall(
            "SELECT * FROM transcript_segments WHERE meeting_id = ? ORDER BY timestamp_ms ASC, id ASC",
            (meeting_id,),
        )
        return [TranscriptSegment.from_row(row) for row in rows]

    # -- Settings --

    def get_setting(self, key: str) -> str | None:
        row = self.fetchone("SELECT value FROM settings WHERE key = ?", (key,))
        return row["value"] if row else None

    def set_setting(self, key: str, value: str):
        self.execute(
            """
            INSERT INTO settings (key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )

    def get_settings(self) -> dict[str, str]:
        return {row["key"]: row["value"] for row in self.fetchall("SELECT key, value FROM settings")}
