"""SQLite schema for the Daybook store.

All state lives in a single SQLite file at ~/.daybook/daybook.db.
Tables:
  context_entries    normalized, embedded facts per user (calendar, mail, profile)
  profiles           raw profile maps, one per user
  feed_items         synthesized feed items, one per context entry ever
  feed_actions       suggested actions, immutable, owned by a feed item
  feed_interactions  append-only log of user interactions with actions
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".daybook" / "daybook.db"

SCHEMA_SQL = """
-- ══════════════════════════════════════════════════════════════════
-- Context entries
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS context_entries (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    source      TEXT NOT NULL,            -- calendar, mail, profile
    source_id   TEXT,                     -- external id, NULL when the source has none
    content     TEXT NOT NULL,            -- rendered text, embedded and cited
    embedding   BLOB NOT NULL,            -- float32 vector, 1536 dim
    created_at  REAL NOT NULL,            -- unix epoch
    updated_at  REAL NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_context_source_item
    ON context_entries(user_id, source, source_id);
CREATE INDEX IF NOT EXISTS idx_context_user_time
    ON context_entries(user_id, created_at DESC);

-- ══════════════════════════════════════════════════════════════════
-- Profiles
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS profiles (
    user_id     TEXT PRIMARY KEY,
    data        BLOB NOT NULL,            -- msgpack'd open map
    updated_at  REAL NOT NULL
);

-- ══════════════════════════════════════════════════════════════════
-- Feed items
-- ══════════════════════════════════════════════════════════════════

CREATE TABLE IF NOT EXISTS feed_items (
    id            TEXT PRIMARY KEY,
    user_id       TEXT NOT NULL,
    type          TEXT NOT NULL,
    priority      TEXT NOT NULL,
    priority_rank INTEGER NOT NULL,       -- 0=urgent … 3=low
    timestamp     REAL NOT NULL,
    expires_at    REAL,
    title         TEXT NOT NULL,
    subtitle      TEXT,
    description   TEXT,
    source        BLOB NOT NULL,          -- msgpack'd FeedSource
    source_id     TEXT NOT NULL,          -- "{context.source}-{context.id}"
    metadata      BLOB,                   -- msgpack'd open map
    tags          TEXT NOT NULL DEFAULT '[]',
    related_items TEXT NOT NULL DEFAULT '[]',
    status        TEXT NOT NULL DEFAULT 'new',
    snooze_until  REAL,
    created_at    REAL NOT NULL,
    updated_at    REAL NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_feed_user_source
    ON feed_items(user_id, source_id);
CREATE INDEX IF NOT EXISTS idx_feed_user_status
    ON feed_items(user_id, status, priority_rank, timestamp);
CREATE INDEX IF NOT EXISTS idx_feed_expires
    ON feed_items(expires_at) WHERE expires_at IS NOT NULL;

CREATE TABLE IF NOT EXISTS feed_actions (
    id                    TEXT PRIMARY KEY,
    feed_item_id          TEXT NOT NULL REFERENCES feed_items(id) ON DELETE CASCADE,
    position              INTEGER NOT NULL,
    label                 TEXT NOT NULL,
    type                  TEXT NOT NULL,
    style                 TEXT NOT NULL,
    icon                  TEXT,
    config                BLOB,           -- msgpack'd type-specific config
    enabled               INTEGER NOT NULL DEFAULT 1,
    requires_confirmation INTEGER NOT NULL DEFAULT 0,
    confirmation_message  TEXT,
    is_async              INTEGER NOT NULL DEFAULT 0,
    loading_text          TEXT,
    success_message       TEXT,
    error_message         TEXT,
    created_at            REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_actions_item ON feed_actions(feed_item_id, position);

CREATE TABLE IF NOT EXISTS feed_interactions (
    id            TEXT PRIMARY KEY,
    feed_item_id  TEXT NOT NULL REFERENCES feed_items(id) ON DELETE CASCADE,
    action_id     TEXT NOT NULL,
    action_type   TEXT NOT NULL,
    result        TEXT,                   -- success | failure | cancelled
    duration_ms   INTEGER,
    error_message TEXT,
    metadata      BLOB,
    timestamp     REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_interactions_item ON feed_interactions(feed_item_id, timestamp);
"""


class Database:
    """Shared SQLite connection plus the lock that serializes write transactions."""

    def __init__(self, db_path: Path | str | None = None):
        self._db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self._conn: sqlite3.Connection | None = None
        self.write_lock = threading.RLock()

    @property
    def path(self) -> Path:
        return self._db_path

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = init_db(self._db_path)
        return self._conn

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None


def init_db(db_path: Path | None = None) -> sqlite3.Connection:
    """Initialize the database, creating tables if needed."""
    path = db_path or DEFAULT_DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.execute("PRAGMA busy_timeout=5000")

    conn.executescript(SCHEMA_SQL)
    conn.commit()

    logger.info("Daybook database initialized at %s", path)
    return conn


# ══════════════════════════════════════════════════════════════════
# Time helpers: rows store unix epochs, models carry aware datetimes
# ══════════════════════════════════════════════════════════════════


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_epoch(dt: datetime | None) -> float | None:
    if dt is None:
        return None
    return ensure_aware(dt).timestamp()


def from_epoch(ts: float | None) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO 8601 string (a trailing ``Z`` is accepted) into an aware UTC datetime."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text)).astimezone(timezone.utc)
