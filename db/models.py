SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS meetings (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    title       TEXT NOT NULL,
    started_at  TEXT NOT NULL,
    ended_at    TEXT,
    summary     TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS transcript_segments (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    meeting_id    INTEGER NOT NULL,
    speaker       TEXT NOT NULL DEFAULT 'Unknown',
    text          TEXT NOT NULL,
    timestamp_ms  INTEGER NOT NULL CHECK (timestamp_ms >= 0),
    is_user       INTEGER NOT NULL DEFAULT 0,
    confidence    REAL NOT NULL DEFAULT 1.0,
    created_at    TEXT NOT NULL DEFAULT (datetime('now')),
    FOREIGN KEY (meeting_id) REFERENCES meetings(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS settings (
    key    TEXT PRIMARY KEY,
    value  TEXT
);

CREATE INDEX IF NOT EXISTS idx_segments_meeting ON transcript_segments(meeting_id);
CREATE INDEX IF NOT EXISTS idx_segments_timestamp ON transcript_segments(timestamp_ms);
CREATE INDEX IF NOT EXISTS idx_meetings_started ON meetings(started_at);
"""

# Duracion en minutos, NULL mientras la reunion sigue activa
MEETING_COLUMNS = """
    id, title, started_at, ended_at, summary,
    CASE
        WHEN ended_at IS NOT NULL
        THEN CAST((julianday(ended_at) - julianday(started_at)) * 24 * 60 AS INTEGER)
        ELSE NULL
    END AS duration
"""
