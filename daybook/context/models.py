"""Context entry types shared by the store, the ranker and the synthesizers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np

from daybook.errors import ValidationError

PROFILE_SOURCE_ID = "user_profile"


class ContextSource(str, Enum):
    CALENDAR = "calendar"
    MAIL = "mail"
    PROFILE = "profile"

    @classmethod
    def parse(cls, value: "ContextSource | str") -> "ContextSource":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Unknown context source '{value}' (expected one of: {allowed})")


@dataclass
class ContextEntry:
    """One normalized fact about a user."""

    id: str
    user_id: str
    source: ContextSource
    source_id: Optional[str]
    content: str
    created_at: datetime
    updated_at: datetime
    embedding: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def composite_key(self) -> str:
        """Key a feed item records to remember which entry produced it."""
        return f"{self.source.value}-{self.id}"


@dataclass
class ScoredEntry:
    """A context entry with its ranking score.

    `similarity` is the raw cosine similarity when the entry came from a
    semantic search, None for pure recency results.
    """

    entry: ContextEntry
    score: float
    similarity: Optional[float] = None

    @property
    def id(self) -> str:
        return self.entry.id


@dataclass
class RelevantContext:
    semantic: list[ScoredEntry]
    recent: list[ScoredEntry]
    combined: list[ScoredEntry]


@dataclass
class ContextStats:
    total: int
    by_source: dict[str, int]
    oldest: Optional[datetime]
    newest: Optional[datetime]
