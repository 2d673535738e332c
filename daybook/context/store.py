"""ContextStore owns creation and update of context entries.

Every entry is keyed by (user, source, source_id) and carries an embedding
of its content. Re-ingesting the same fact updates the row in place.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime

import numpy as np

from daybook.context.embeddings import blob_to_vector, vector_to_blob
from daybook.context.models import ContextEntry, ContextSource, ContextStats
from daybook.db import Database, from_epoch, to_epoch, utcnow
from daybook.errors import DataIntegrityError, ProviderError, ValidationError
from daybook.llm.base import EmbeddingProvider

logger = logging.getLogger(__name__)


class ContextStore:
    """Manages the context_entries table."""

    def __init__(self, db: Database, embedder: EmbeddingProvider):
        self.db = db
        self.embedder = embedder

    @property
    def dimension(self) -> int:
        return self.embedder.dimension

    # ══════════════════════════════════════════════════════════════
    # Writes
    # ══════════════════════════════════════════════════════════════

    def upsert_context(
        self,
        user_id: str,
        source: ContextSource | str,
        source_id: str | None,
        content: str,
        now: datetime | None = None,
    ) -> ContextEntry:
        """Embed `content` and insert or update the entry for this key.

        The embedding is computed before touching the database, so a provider
        failure leaves the stored row exactly as it was.
        """
        if not user_id:
            raise ValidationError("user_id is required")
        if not content or not content.strip():
            raise ValidationError("content must not be empty")
        source = ContextSource.parse(source)

        vector = self.embed_text(content)
        ts = to_epoch(now or utcnow())
        entry_id = uuid.uuid4().hex
        blob = vector_to_blob(vector)

        with self.db.write_lock:
            try:
                if source_id is None:
                    self.db.conn.execute(
                        """INSERT INTO context_entries
                           (id, user_id, source, source_id, content, embedding, created_at, updated_at)
                           VALUES (?, ?, ?, NULL, ?, ?, ?, ?)""",
                        (entry_id, user_id, source.value, content, blob, ts, ts),
                    )
                else:
                    self.db.conn.execute(
                        """INSERT INTO context_entries
                           (id, user_id, source, source_id, content, embedding, created_at, updated_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                           ON CONFLICT(user_id, source, source_id) DO UPDATE SET
                             content = excluded.content,
                             embedding = excluded.embedding,
                             updated_at = excluded.updated_at
                        """,
                        (entry_id, user_id, source.value, source_id, content, blob, ts, ts),
                    )
                self.db.conn.commit()
            except sqlite3.IntegrityError as exc:
                self.db.conn.rollback()
                logger.error(
                    "Integrity violation upserting context (%s, %s, %s): %s",
                    user_id, source.value, source_id, exc,
                )
                raise DataIntegrityError(
                    "Context upsert violated a uniqueness constraint",
                    {"user_id": user_id, "source": source.value, "source_id": source_id},
                ) from exc

            if source_id is None:
                row = self.db.conn.execute(
                    "SELECT * FROM context_entries WHERE id = ?", (entry_id,)
                ).fetchone()
            else:
                row = self.db.conn.execute(
                    """SELECT * FROM context_entries
                       WHERE user_id = ? AND source = ? AND source_id = ?""",
                    (user_id, source.value, source_id),
                ).fetchone()

        entry = self._row_to_entry(row, with_embedding=True)
        logger.debug("Upserted context %s (%s/%s)", entry.id, source.value, source_id)
        return entry

    def delete_source(
        self,
        user_id: str,
        source: ContextSource | str,
        source_id: str | None = None,
    ) -> int:
        """Explicitly remove entries of a source (or one item of it). Returns rows deleted."""
        source = ContextSource.parse(source)
        with self.db.write_lock:
            if source_id is None:
                cur = self.db.conn.execute(
                    "DELETE FROM context_entries WHERE user_id = ? AND source = ?",
                    (user_id, source.value),
                )
            else:
                cur = self.db.conn.execute(
                    "DELETE FROM context_entries WHERE user_id = ? AND source = ? AND source_id = ?",
                    (user_id, source.value, source_id),
                )
            self.db.conn.commit()
        return cur.rowcount

    def embed_text(self, text: str) -> np.ndarray:
        vector = np.asarray(self.embedder.embed(text), dtype=np.float32)
        if vector.ndim != 1 or vector.shape[0] != self.dimension:
            raise ProviderError(
                f"Embedding has shape {vector.shape}, expected ({self.dimension},)"
            )
        return vector

    # ══════════════════════════════════════════════════════════════
    # Reads
    # ══════════════════════════════════════════════════════════════

    def get(self, entry_id: str) -> ContextEntry | None:
        row = self.db.conn.execute(
            "SELECT * FROM context_entries WHERE id = ?", (entry_id,)
        ).fetchone()
        if not row:
            return None
        return self._row_to_entry(row, with_embedding=True)

    def list_by_user(
        self,
        user_id: str,
        source: ContextSource | str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[ContextEntry]:
        """Entries for a user, newest first."""
        sql, params = self._filtered_query(user_id, source, since, until)
        sql += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self.db.conn.execute(sql, params).fetchall()
        return [self._row_to_entry(r) for r in rows]

    def embedded_entries(
        self,
        user_id: str,
        source: ContextSource | str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> tuple[list[ContextEntry], np.ndarray]:
        """All matching entries plus their vectors stacked as an (n, dim) matrix."""
        sql, params = self._filtered_query(user_id, source, since, until)
        sql += " ORDER BY created_at DESC, rowid DESC"
        rows = self.db.conn.execute(sql, params).fetchall()

        entries = [self._row_to_entry(r, with_embedding=True) for r in rows]
        if not entries:
            return [], np.zeros((0, self.dimension), dtype=np.float32)
        matrix = np.stack([e.embedding for e in entries])
        return entries, matrix

    def stats(self, user_id: str) -> ContextStats:
        rows = self.db.conn.execute(
            """SELECT source, COUNT(*) AS n, MIN(created_at) AS oldest, MAX(created_at) AS newest
               FROM context_entries WHERE user_id = ? GROUP BY source""",
            (user_id,),
        ).fetchall()
        by_source = {r["source"]: r["n"] for r in rows}
        oldest = min((r["oldest"] for r in rows), default=None)
        newest = max((r["newest"] for r in rows), default=None)
        return ContextStats(
            total=sum(by_source.values()),
            by_source=by_source,
            oldest=from_epoch(oldest),
            newest=from_epoch(newest),
        )

    def _filtered_query(
        self,
        user_id: str,
        source: ContextSource | str | None,
        since: datetime | None,
        until: datetime | None,
    ) -> tuple[str, list]:
        sql = "SELECT * FROM context_entries WHERE user_id = ?"
        params: list = [user_id]
        if source is not None:
            sql += " AND source = ?"
            params.append(ContextSource.parse(source).value)
        if since is not None:
            sql += " AND created_at >= ?"
            params.append(to_epoch(since))
        if until is not None:
            sql += " AND created_at <= ?"
            params.append(to_epoch(until))
        return sql, params

    def _row_to_entry(self, row: sqlite3.Row, with_embedding: bool = False) -> ContextEntry:
        embedding = blob_to_vector(row["embedding"]) if with_embedding else None
        return ContextEntry(
            id=row["id"],
            user_id=row["user_id"],
            source=ContextSource(row["source"]),
            source_id=row["source_id"],
            content=row["content"],
            created_at=from_epoch(row["created_at"]),
            updated_at=from_epoch(row["updated_at"]),
            embedding=embedding,
        )


def truncate(text: str, limit: int, marker: str = "...") -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + marker

