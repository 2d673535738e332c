"""Actionable feed: synthesis from context and item lifecycle."""

from daybook.feed.lifecycle import FeedLifecycleManager
from daybook.feed.models import FeedGenerationResult, FeedItem, FeedStatus
from daybook.feed.store import FeedStore
from daybook.feed.synthesizer import FeedSynthesizer

__all__ = [
    "FeedLifecycleManager",
    "FeedGenerationResult",
    "FeedItem",
    "FeedStatus",
    "FeedStore",
    "FeedSynthesizer",
]
