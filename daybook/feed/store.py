"""FeedStore: persistence for feed items, their actions and interaction log.

Items and their actions are written in one transaction. Status changes and
interaction appends are single statements. Open maps (source, metadata,
action config) are msgpack'd; tags and related item ids are JSON text.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Iterable

import msgpack

from daybook.db import Database, from_epoch, to_epoch
from daybook.errors import DataIntegrityError
from daybook.feed.models import (
    ActionStyle,
    ActionType,
    FeedAction,
    FeedItem,
    FeedItemPriority,
    FeedItemType,
    FeedSource,
    FeedStatus,
    Interaction,
    InteractionResult,
)

logger = logging.getLogger(__name__)


def _pack(data: dict | None) -> bytes | None:
    return msgpack.packb(data, use_bin_type=True) if data else None


def _unpack(blob: bytes | None) -> dict:
    return msgpack.unpackb(blob, raw=False) if blob else {}


class FeedStore:
    """Manages feed_items, feed_actions and feed_interactions."""

    def __init__(self, db: Database):
        self.db = db

    # ══════════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════════

    def insert_item(self, item: FeedItem) -> FeedItem:
        """Insert an item and all of its actions atomically.

        Raises DataIntegrityError if the user already has an item for
        `item.source_id`; nothing is written in that case.
        """
        conn = self.db.conn
        with self.db.write_lock:
            try:
                conn.execute(
                    """INSERT INTO feed_items
                       (id, user_id, type, priority, priority_rank, timestamp, expires_at,
                        title, subtitle, description, source, source_id, metadata,
                        tags, related_items, status, snooze_until, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        item.id, item.user_id, item.type.value, item.priority.value,
                        item.priority.rank, to_epoch(item.timestamp), to_epoch(item.expires_at),
                        item.title, item.subtitle, item.description,
                        msgpack.packb(item.source.to_dict(), use_bin_type=True),
                        item.source_id, _pack(item.metadata),
                        json.dumps(item.tags), json.dumps(item.related_items),
                        item.status.value, to_epoch(item.snooze_until),
                        to_epoch(item.created_at), to_epoch(item.updated_at),
                    ),
                )
                for position, action in enumerate(item.actions):
                    conn.execute(
                        """INSERT INTO feed_actions
                           (id, feed_item_id, position, label, type, style, icon, config,
                            enabled, requires_confirmation, confirmation_message, is_async,
                            loading_text, success_message, error_message, created_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                        (
                            action.id, item.id, position, action.label, action.type.value,
                            action.style.value, action.icon, _pack(action.config),
                            int(action.enabled), int(action.requires_confirmation),
                            action.confirmation_message, int(action.is_async),
                            action.loading_text, action.success_message, action.error_message,
                            to_epoch(item.created_at),
                        ),
                    )
                conn.commit()
            except sqlite3.IntegrityError as exc:
                conn.rollback()
                raise DataIntegrityError(
                    f"Feed item for {item.source_id} already exists",
                    {"user_id": item.user_id, "source_id": item.source_id},
                ) from exc
        return item

    def set_status(
        self,
        item_id: str,
        expected: FeedStatus,
        status: FeedStatus,
        snooze_until: datetime | None,
        now: datetime,
    ) -> bool:
        """Compare-and-set: write only if the item is still in `expected`."""
        with self.db.write_lock:
            cur = self.db.conn.execute(
                """UPDATE feed_items SET status = ?, snooze_until = ?, updated_at = ?
                   WHERE id = ? AND status = ?""",
                (status.value, to_epoch(snooze_until), to_epoch(now), item_id, expected.value),
            )
            self.db.conn.commit()
        return cur.rowcount == 1

    def append_interaction(self, interaction: Interaction) -> Interaction:
        with self.db.write_lock:
            self.db.conn.execute(
                """INSERT INTO feed_interactions
                   (id, feed_item_id, action_id, action_type, result, duration_ms,
                    error_message, metadata, timestamp)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    interaction.id, interaction.feed_item_id, interaction.action_id,
                    interaction.action_type,
                    interaction.result.value if interaction.result else None,
                    interaction.duration_ms, interaction.error_message,
                    _pack(interaction.metadata), to_epoch(interaction.timestamp),
                ),
            )
            self.db.conn.commit()
        return interaction

    def expire_due(self, now: datetime) -> int:
        """Mark every non-expired item whose expires_at is before `now` as EXPIRED."""
        ts = to_epoch(now)
        with self.db.write_lock:
            cur = self.db.conn.execute(
                """UPDATE feed_items SET status = ?, snooze_until = NULL, updated_at = ?
                   WHERE status != ? AND expires_at IS NOT NULL AND expires_at < ?""",
                (FeedStatus.EXPIRED.value, ts, FeedStatus.EXPIRED.value, ts),
            )
            self.db.conn.commit()
        return cur.rowcount

    # ══════════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════════

    def existing_source_ids(self, user_id: str, candidates: Iterable[str]) -> set[str]:
        """Subset of `candidates` that already have a feed item for this user."""
        candidates = list(candidates)
        if not candidates:
            return set()
        placeholders = ",".join("?" for _ in candidates)
        rows = self.db.conn.execute(
            f"SELECT source_id FROM feed_items WHERE user_id = ? AND source_id IN ({placeholders})",
            [user_id, *candidates],
        ).fetchall()
        return {r["source_id"] for r in rows}

    def get(self, item_id: str) -> FeedItem | None:
        row = self.db.conn.execute("SELECT * FROM feed_items WHERE id = ?", (item_id,)).fetchone()
        if not row:
            return None
        item = self._row_to_item(row)
        item.interactions = self._interactions(item_id)
        return item

    def list_active(
        self,
        user_id: str,
        now: datetime,
        include_expired: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> list[FeedItem]:
        """NEW items plus SNOOZED items that are due, urgent first, then oldest timestamp first."""
        ts = to_epoch(now)
        statuses = [FeedStatus.NEW.value]
        if include_expired:
            statuses.append(FeedStatus.EXPIRED.value)
        placeholders = ",".join("?" for _ in statuses)

        sql = f"""SELECT * FROM feed_items
                  WHERE user_id = ?
                    AND (status IN ({placeholders})
                         OR (status = ? AND snooze_until IS NOT NULL AND snooze_until <= ?))"""
        params: list = [user_id, *statuses, FeedStatus.SNOOZED.value, ts]
        if not include_expired:
            sql += " AND (expires_at IS NULL OR expires_at >= ?)"
            params.append(ts)
        sql += " ORDER BY priority_rank ASC, timestamp ASC, rowid ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        rows = self.db.conn.execute(sql, params).fetchall()
        return [self._row_to_item(r) for r in rows]

    def count_by_status(self, user_id: str) -> dict[str, int]:
        rows = self.db.conn.execute(
            "SELECT status, COUNT(*) AS n FROM feed_items WHERE user_id = ? GROUP BY status",
            (user_id,),
        ).fetchall()
        return {r["status"]: r["n"] for r in rows}

    def _actions(self, item_id: str) -> list[FeedAction]:
        rows = self.db.conn.execute(
            "SELECT * FROM feed_actions WHERE feed_item_id = ? ORDER BY position",
            (item_id,),
        ).fetchall()
        return [
            FeedAction(
                id=r["id"],
                feed_item_id=r["feed_item_id"],
                label=r["label"],
                type=ActionType(r["type"]),
                style=ActionStyle(r["style"]),
                config=_unpack(r["config"]),
                icon=r["icon"],
                enabled=bool(r["enabled"]),
                requires_confirmation=bool(r["requires_confirmation"]),
                confirmation_message=r["confirmation_message"],
                is_async=bool(r["is_async"]),
                loading_text=r["loading_text"],
                success_message=r["success_message"],
                error_message=r["error_message"],
            )
            for r in rows
        ]

    def _interactions(self, item_id: str) -> list[Interaction]:
        rows = self.db.conn.execute(
            "SELECT * FROM feed_interactions WHERE feed_item_id = ? ORDER BY timestamp, rowid",
            (item_id,),
        ).fetchall()
        return [
            Interaction(
                id=r["id"],
                feed_item_id=r["feed_item_id"],
                action_id=r["action_id"],
                action_type=r["action_type"],
                timestamp=from_epoch(r["timestamp"]),
                result=InteractionResult(r["result"]) if r["result"] else None,
                duration_ms=r["duration_ms"],
                error_message=r["error_message"],
                metadata=_unpack(r["metadata"]),
            )
            for r in rows
        ]

    def _row_to_item(self, row: sqlite3.Row) -> FeedItem:
        return FeedItem(
            id=row["id"],
            user_id=row["user_id"],
            type=FeedItemType(row["type"]),
            priority=FeedItemPriority(row["priority"]),
            timestamp=from_epoch(row["timestamp"]),
            expires_at=from_epoch(row["expires_at"]),
            title=row["title"],
            subtitle=row["subtitle"],
            description=row["description"],
            source=FeedSource.from_dict(_unpack(row["source"])),
            source_id=row["source_id"],
            metadata=_unpack(row["metadata"]),
            tags=json.loads(row["tags"]),
            related_items=json.loads(row["related_items"]),
            status=FeedStatus(row["status"]),
            snooze_until=from_epoch(row["snooze_until"]),
            created_at=from_epoch(row["created_at"]),
            updated_at=from_epoch(row["updated_at"]),
            actions=self._actions(row["id"]),
        )
