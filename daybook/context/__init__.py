"""Embedded context entries and hybrid retrieval over them."""

from daybook.context.models import ContextEntry, ContextSource, RelevantContext, ScoredEntry
from daybook.context.ranker import RetrievalRanker
from daybook.context.store import ContextStore

__all__ = [
    "ContextEntry",
    "ContextSource",
    "RelevantContext",
    "ScoredEntry",
    "RetrievalRanker",
    "ContextStore",
]
