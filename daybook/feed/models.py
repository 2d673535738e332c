"""Feed item, action and interaction types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class FeedItemType(str, Enum):
    CALENDAR_EVENT = "calendar_event"
    EMAIL = "email"
    TASK = "task"
    REMINDER = "reminder"
    NOTIFICATION = "notification"
    ARTICLE = "article"
    SUGGESTION = "suggestion"
    ALERT = "alert"
    CUSTOM = "custom"


class FeedItemPriority(str, Enum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """0 = most urgent. Used for ordering."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    FeedItemPriority.URGENT: 0,
    FeedItemPriority.HIGH: 1,
    FeedItemPriority.MEDIUM: 2,
    FeedItemPriority.LOW: 3,
}


class FeedStatus(str, Enum):
    NEW = "new"
    VIEWED = "viewed"
    ACTED = "acted"
    DISMISSED = "dismissed"
    SNOOZED = "snoozed"
    COMPLETED = "completed"
    EXPIRED = "expired"


class ActionType(str, Enum):
    NAVIGATE = "navigate"
    API_CALL = "api_call"
    MODAL = "modal"
    INLINE = "inline"
    AI_ACTION = "ai_action"
    DISMISS = "dismiss"
    SNOOZE = "snooze"
    COMPLETE = "complete"
    CUSTOM = "custom"


class ActionStyle(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    DANGER = "danger"
    SUCCESS = "success"
    LINK = "link"


class InteractionResult(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"


@dataclass
class FeedSource:
    """Where a feed item came from."""

    type: str
    account_id: Optional[str] = None
    integration_name: Optional[str] = None
    source_url: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "account_id": self.account_id,
            "integration_name": self.integration_name,
            "source_url": self.source_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FeedSource":
        return cls(
            type=data.get("type", "custom"),
            account_id=data.get("account_id"),
            integration_name=data.get("integration_name"),
            source_url=data.get("source_url"),
        )


@dataclass(frozen=True)
class FeedAction:
    """A suggested action. Immutable once created with its item."""

    id: str
    feed_item_id: str
    label: str
    type: ActionType
    style: ActionStyle = ActionStyle.SECONDARY
    config: dict[str, Any] = field(default_factory=dict)
    icon: Optional[str] = None
    enabled: bool = True
    requires_confirmation: bool = False
    confirmation_message: Optional[str] = None
    is_async: bool = False
    loading_text: Optional[str] = None
    success_message: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class Interaction:
    id: str
    feed_item_id: str
    action_id: str
    action_type: str
    timestamp: datetime
    result: Optional[InteractionResult] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class FeedItem:
    id: str
    user_id: str
    type: FeedItemType
    priority: FeedItemPriority
    timestamp: datetime
    title: str
    source: FeedSource
    source_id: str
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    related_items: list[str] = field(default_factory=list)
    status: FeedStatus = FeedStatus.NEW
    snooze_until: Optional[datetime] = None
    actions: list[FeedAction] = field(default_factory=list)
    interactions: list[Interaction] = field(default_factory=list)


@dataclass
class FeedGenerationResult:
    """Counters from one generation run.

    `skipped` counts context entries that produced no new item because they
    were already in the feed (or because the whole response was unusable).
    """

    generated: int = 0
    skipped: int = 0
    errors: int = 0
    fallbacks: int = 0
    items: list[FeedItem] = field(default_factory=list)
