"""Feed item status machine, expiry sweep, interaction log and active listing.

    NEW ──► VIEWED ──► ACTED ──► DISMISSED | COMPLETED
     │        │
     └────────┴──► SNOOZED ──► (back to VIEWED or any terminal)

DISMISSED, COMPLETED and EXPIRED are terminal. EXPIRED is only reached
through `sweep_expired`.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Optional

from daybook.db import ensure_aware, utcnow
from daybook.errors import NotFoundError, ValidationError
from daybook.feed.models import FeedItem, FeedStatus, Interaction, InteractionResult
from daybook.feed.store import FeedStore

logger = logging.getLogger(__name__)

S = FeedStatus
ALLOWED_TRANSITIONS: dict[FeedStatus, frozenset[FeedStatus]] = {
    S.NEW: frozenset({S.VIEWED, S.ACTED, S.DISMISSED, S.SNOOZED, S.COMPLETED}),
    S.VIEWED: frozenset({S.ACTED, S.DISMISSED, S.SNOOZED, S.COMPLETED}),
    S.SNOOZED: frozenset({S.VIEWED, S.ACTED, S.DISMISSED, S.SNOOZED, S.COMPLETED}),
    S.ACTED: frozenset({S.DISMISSED, S.COMPLETED}),
    S.DISMISSED: frozenset(),
    S.COMPLETED: frozenset(),
    S.EXPIRED: frozenset(),
}


def parse_status(value: FeedStatus | str) -> FeedStatus:
    if isinstance(value, FeedStatus):
        return value
    try:
        return FeedStatus(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(s.value for s in FeedStatus)
        raise ValidationError(f"Unknown feed status '{value}' (expected one of: {allowed})")


class FeedLifecycleManager:
    """Owns status/snooze changes and interaction appends for feed items."""

    def __init__(self, store: FeedStore, now: Callable[[], datetime] = utcnow):
        self.store = store
        self._now = now

    def get_item(self, feed_item_id: str) -> FeedItem:
        item = self.store.get(feed_item_id)
        if item is None:
            raise NotFoundError(f"Feed item not found: {feed_item_id}")
        return item

    def update_status(
        self,
        feed_item_id: str,
        status: FeedStatus | str,
        snooze_until: Optional[datetime] = None,
    ) -> FeedItem:
        """Move an item to `status`.

        SNOOZED requires `snooze_until`; any other status clears it.
        Re-applying the current status is a no-op (SNOOZED re-snoozes).
        """
        status = parse_status(status)
        if status is FeedStatus.EXPIRED:
            raise ValidationError("Items expire only through the expiry sweep")
        if status is FeedStatus.SNOOZED and snooze_until is None:
            raise ValidationError("snooze_until is required when snoozing")

        item = self.get_item(feed_item_id)
        if item.status is status and status is not FeedStatus.SNOOZED:
            return item
        if status not in ALLOWED_TRANSITIONS[item.status]:
            raise ValidationError(
                f"Cannot move feed item from {item.status.value} to {status.value}",
                {"feed_item_id": feed_item_id},
            )

        until = ensure_aware(snooze_until) if status is FeedStatus.SNOOZED else None
        if not self.store.set_status(feed_item_id, item.status, status, until, self._now()):
            current = self.get_item(feed_item_id)
            raise ValidationError(
                f"Feed item moved to {current.status.value} while changing it to {status.value}",
                {"feed_item_id": feed_item_id},
            )
        logger.debug("Feed item %s: %s → %s", feed_item_id, item.status.value, status.value)
        return self.get_item(feed_item_id)

    def record_interaction(
        self,
        feed_item_id: str,
        action_id: str,
        action_type: str,
        result: InteractionResult | str | None = None,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> Interaction:
        """Append to the interaction log, whatever the item's status."""
        if not action_id or not action_type:
            raise ValidationError("action_id and action_type are required")
        if result is not None and not isinstance(result, InteractionResult):
            try:
                result = InteractionResult(str(result).strip().lower())
            except ValueError:
                raise ValidationError(f"Unknown interaction result '{result}'")
        if duration_ms is not None and duration_ms < 0:
            raise ValidationError("duration_ms must not be negative")

        self.get_item(feed_item_id)
        interaction = Interaction(
            id=uuid.uuid4().hex,
            feed_item_id=feed_item_id,
            action_id=action_id,
            action_type=action_type,
            timestamp=self._now(),
            result=result,
            duration_ms=duration_ms,
            error_message=error_message,
            metadata=metadata or {},
        )
        return self.store.append_interaction(interaction)

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Expire every item whose expires_at has passed. Idempotent."""
        count = self.store.expire_due(ensure_aware(now) if now else self._now())
        if count:
            logger.info("Expired %d feed item(s)", count)
        return count

    def list_active(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
        include_expired: bool = False,
    ) -> list[FeedItem]:
        if limit <= 0:
            raise ValidationError(f"limit must be positive, got {limit}")
        if offset < 0:
            raise ValidationError(f"offset must not be negative, got {offset}")
        return self.store.list_active(
            user_id, self._now(), include_expired=include_expired, limit=limit, offset=offset,
        )
