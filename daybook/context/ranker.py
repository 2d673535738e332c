"""Hybrid retrieval over a user's context entries.

Combines two retrieval paths:
1. Semantic: cosine similarity of the query embedding against every stored
   vector for the user (full scan, fine for a few thousand entries)
2. Temporal: entries created inside a recent window, newest first

Pure similarity misses time-sensitive facts that share few words with the
question ("what does today look like" vs. an event titled with a person's
name); pure recency misses everything outside the window. The blended view
merges both, dedupes by entry id, and ranks by a weighted score.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from daybook.context.embeddings import cosine_similarities
from daybook.context.models import ContextSource, RelevantContext, ScoredEntry
from daybook.context.store import ContextStore
from daybook.db import utcnow
from daybook.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SEMANTIC_WEIGHT = 0.7
DEFAULT_WINDOW_HOURS = 24


class RetrievalRanker:
    """Ranks context entries by similarity, recency, or a blend of both."""

    def __init__(self, store: ContextStore):
        self.store = store

    def rank_by_similarity(
        self,
        user_id: str,
        query_text: str,
        limit: int = 10,
    ) -> list[ScoredEntry]:
        """Top `limit` entries by cosine similarity to `query_text`.

        Ties are broken newer-first.
        """
        return self._rank(user_id, query_text, limit)

    def advanced_search(
        self,
        user_id: str,
        query_text: str,
        source: ContextSource | str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 10,
    ) -> list[ScoredEntry]:
        """Similarity search restricted by source and creation date range."""
        return self._rank(user_id, query_text, limit, source=source, since=start, until=end)

    def recent_context(
        self,
        user_id: str,
        window_hours: float = DEFAULT_WINDOW_HOURS,
        limit: int = 10,
        now: datetime | None = None,
    ) -> list[ScoredEntry]:
        """Entries created within the last `window_hours`, newest first. No scoring."""
        _check_limit(limit, "limit")
        now = now or utcnow()
        entries = self.store.list_by_user(
            user_id,
            since=now - timedelta(hours=window_hours),
            limit=limit,
        )
        return [ScoredEntry(entry=e, score=0.0) for e in entries]

    def relevant_context(
        self,
        user_id: str,
        query_text: str,
        semantic_limit: int = 10,
        recent_limit: int = 5,
        semantic_weight: float = DEFAULT_SEMANTIC_WEIGHT,
        window_hours: float = DEFAULT_WINDOW_HOURS,
        now: datetime | None = None,
    ) -> RelevantContext:
        """Blend semantic and recent results into one ranked list.

        Semantic entries score `similarity × w`; the recent entry at rank i
        scores `(1 − i/recent_limit) × (1 − w)`. An entry found by both paths
        appears once, with its semantic score.
        """
        if not 0.0 <= semantic_weight <= 1.0:
            raise ValidationError(f"semantic_weight must be within [0, 1], got {semantic_weight}")
        _check_limit(semantic_limit, "semantic_limit")
        _check_limit(recent_limit, "recent_limit")

        semantic = self.rank_by_similarity(user_id, query_text, semantic_limit)
        recent = self.recent_context(user_id, window_hours, recent_limit, now=now)

        seen: set[str] = set()
        combined: list[ScoredEntry] = []

        for result in semantic:
            if result.id in seen:
                continue
            seen.add(result.id)
            combined.append(ScoredEntry(
                entry=result.entry,
                score=result.similarity * semantic_weight,
                similarity=result.similarity,
            ))

        for rank, result in enumerate(recent):
            if result.id in seen:
                continue
            seen.add(result.id)
            temporal_score = (1 - rank / recent_limit) * (1 - semantic_weight)
            combined.append(ScoredEntry(entry=result.entry, score=temporal_score))

        # stable sort keeps semantic-before-recent order on equal scores
        combined.sort(key=lambda s: s.score, reverse=True)

        logger.debug(
            "Relevant context for %s: %d semantic + %d recent → %d combined",
            user_id, len(semantic), len(recent), len(combined),
        )
        return RelevantContext(semantic=semantic, recent=recent, combined=combined)

    def _rank(
        self,
        user_id: str,
        query_text: str,
        limit: int,
        source: ContextSource | str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[ScoredEntry]:
        _check_limit(limit, "limit")
        if not query_text or not query_text.strip():
            raise ValidationError("query_text must not be empty")

        query_vec = self.store.embed_text(query_text)
        entries, matrix = self.store.embedded_entries(user_id, source=source, since=since, until=until)
        if not entries:
            return []

        sims = cosine_similarities(query_vec, matrix)

        scored: list[ScoredEntry] = []
        for entry, sim in zip(entries, sims):
            if math.isnan(sim):
                logger.warning("Skipping context %s: stored embedding has zero norm", entry.id)
                continue
            scored.append(ScoredEntry(entry=entry, score=float(sim), similarity=float(sim)))

        scored.sort(key=lambda s: (s.similarity, s.entry.created_at), reverse=True)
        return scored[:limit]


def _check_limit(value: int, name: str):
    if value <= 0:
        raise ValidationError(f"{name} must be positive, got {value}")
