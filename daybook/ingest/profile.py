"""Profile storage plus its singleton searchable context entry."""

from __future__ import annotations

import logging
from typing import Any

import msgpack

from daybook.context.models import PROFILE_SOURCE_ID, ContextEntry, ContextSource
from daybook.context.store import ContextStore
from daybook.db import Database, to_epoch, utcnow
from daybook.errors import ValidationError
from daybook.ingest.render import render_profile

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, db: Database, store: ContextStore):
        self.db = db
        self.store = store

    def update_profile(self, user_id: str, data: dict[str, Any]) -> ContextEntry:
        """Replace the stored profile and refresh its context entry.

        The context entry is written first; it embeds before touching the
        database, so a provider failure leaves both the profile and the entry
        unchanged.
        """
        if not isinstance(data, dict) or not data:
            raise ValidationError("profile data must be a non-empty object")

        entry = self.store.upsert_context(user_id, ContextSource.PROFILE, PROFILE_SOURCE_ID, render_profile(data))
        with self.db.write_lock:
            self.db.conn.execute(
                """INSERT INTO profiles (user_id, data, updated_at) VALUES (?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at""",
                (user_id, msgpack.packb(data, use_bin_type=True), to_epoch(utcnow())),
            )
            self.db.conn.commit()
        logger.debug("Updated profile for %s", user_id)
        return entry

    def get_profile(self, user_id: str) -> dict[str, Any] | None:
        row = self.db.conn.execute(
            "SELECT data FROM profiles WHERE user_id = ?", (user_id,)
        ).fetchone()
        if not row:
            return None
        return msgpack.unpackb(row["data"], raw=False)

    def delete_profile(self, user_id: str) -> bool:
        """Remove the profile and its context entry. Returns False if there was none."""
        with self.db.write_lock:
            cur = self.db.conn.execute("DELETE FROM profiles WHERE user_id = ?", (user_id,))
            self.db.conn.commit()
        removed = self.store.delete_source(user_id, ContextSource.PROFILE, PROFILE_SOURCE_ID)
        return bool(cur.rowcount or removed)
