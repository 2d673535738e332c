"""Turn new context entries into feed items with one model call.

Pipeline per `generate(user_id)`:
  1. Load the newest N context entries for the user
  2. Drop entries whose composite key ("{source}-{id}") already has a feed item
  3. Send the rest as indexed excerpts; the model answers with JSON
  4. Map each returned item back to its excerpt, normalize labels, persist

A context entry becomes at most one feed item, ever. Unrecognized labels from
the model are accepted with a fallback and counted; a response that is not
JSON at all aborts the batch without writing anything.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from json_repair import repair_json

from daybook.context.models import ContextEntry, ContextSource
from daybook.context.store import ContextStore, truncate
from daybook.db import parse_datetime, utcnow
from daybook.errors import DataIntegrityError, FeedParseError, PartialBatchError
from daybook.feed.models import (
    ActionStyle,
    ActionType,
    FeedAction,
    FeedGenerationResult,
    FeedItem,
    FeedItemPriority,
    FeedItemType,
    FeedSource,
)
from daybook.feed.store import FeedStore
from daybook.llm.base import GenerationProvider
from daybook.llm.loader import PromptDefinition, load_prompt
from daybook.llm.parsing import strip_code_fences

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_LIMIT = 20
EXCERPT_CHARS = 800
MAX_ACTIONS = 3
EVENT_GRACE = timedelta(hours=3)
DEFAULT_TTL = timedelta(hours=24)

TYPE_BY_SOURCE = {
    ContextSource.CALENDAR: FeedItemType.CALENDAR_EVENT,
    ContextSource.MAIL: FeedItemType.EMAIL,
}
ORIGIN_BY_SOURCE = {
    ContextSource.CALENDAR: "calendar",
    ContextSource.MAIL: "gmail",
    ContextSource.PROFILE: "custom",
}

_START_LINE = re.compile(r"^Start:\s*(.+)$", re.MULTILINE)
_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_feed_response(raw: str) -> list:
    """Parse model output into a list of raw item objects.

    Accepts `{"items": [...]}` or a bare JSON list, optionally fenced.
    Truncated or slightly malformed JSON goes through json_repair.
    Raises FeedParseError when the response is unusable as a whole.
    """
    cleaned = strip_code_fences(raw or "")
    if not cleaned:
        raise FeedParseError("Model returned an empty response")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        data = repair_json(cleaned, return_objects=True)
        logger.debug("Repaired malformed feed JSON (%d chars)", len(cleaned))

    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise FeedParseError("Model response has no list of items")
    return data


def format_excerpts(entries: list[ContextEntry]) -> str:
    """1-based indexed, source-tagged excerpts, each truncated."""
    return "\n\n".join(
        f"[{i}] ({e.source.value}) {truncate(e.content, EXCERPT_CHARS, '...[truncated]')}"
        for i, e in enumerate(entries, start=1)
    )


class FeedSynthesizer:
    """Generates feed items from unprocessed context."""

    def __init__(
        self,
        context_store: ContextStore,
        feed_store: FeedStore,
        llm: GenerationProvider,
        context_limit: int = DEFAULT_CONTEXT_LIMIT,
        prompt: PromptDefinition | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.context_store = context_store
        self.feed_store = feed_store
        self.llm = llm
        self.context_limit = context_limit
        self.prompt = prompt or load_prompt("feed_generate")
        self._now = now

    def generate(self, user_id: str) -> FeedGenerationResult:
        entries = self.context_store.list_by_user(user_id, limit=self.context_limit)
        loaded = len(entries)
        existing = self.feed_store.existing_source_ids(user_id, [e.composite_key for e in entries])
        fresh = [e for e in entries if e.composite_key not in existing]

        if not fresh:
            logger.info("Feed for %s: nothing new in %d loaded entries", user_id, loaded)
            return FeedGenerationResult(skipped=loaded)

        now = self._now()
        raw = self.llm.run(
            self.prompt.render(current_time=now.isoformat()),
            format_excerpts(fresh),
            temperature=self.prompt.temperature,
        )

        try:
            raw_items = parse_feed_response(raw)
        except FeedParseError as exc:
            logger.error("Feed generation for %s aborted: %s", user_id, exc)
            return FeedGenerationResult(skipped=loaded, errors=1)

        result = FeedGenerationResult(skipped=loaded - len(fresh))
        claimed: set[int] = set()

        for position, raw_item in enumerate(raw_items, start=1):
            builder = _ItemBuilder(user_id, fresh, now)
            try:
                item = builder.build(raw_item, claimed)
            except PartialBatchError as exc:
                logger.warning("Skipping feed item #%d for %s: %s", position, user_id, exc)
                result.errors += 1
                continue
            result.fallbacks += builder.fallbacks

            try:
                self.feed_store.insert_item(item)
            except DataIntegrityError as exc:
                logger.error("Feed item for %s not stored: %s", item.source_id, exc)
                result.errors += 1
                continue

            result.generated += 1
            result.items.append(item)

        logger.info(
            "Feed for %s: generated=%d skipped=%d errors=%d fallbacks=%d",
            user_id, result.generated, result.skipped, result.errors, result.fallbacks,
        )
        return result


class _ItemBuilder:
    """Validates one raw model item and maps it onto a FeedItem."""

    def __init__(self, user_id: str, entries: list[ContextEntry], now: datetime):
        self.user_id = user_id
        self.entries = entries
        self.now = now
        self.fallbacks = 0

    def _fallback(self, what: str, value: Any, default: str):
        logger.warning("Unrecognized %s %r from model, using %s", what, value, default)
        self.fallbacks += 1

    def build(self, raw: Any, claimed: set[int]) -> FeedItem:
        if not isinstance(raw, dict):
            raise PartialBatchError(f"item is not an object: {raw!r}")

        index = raw.get("source_index")
        if isinstance(index, bool) or not isinstance(index, int):
            raise PartialBatchError(f"missing or non-integer source_index: {index!r}")
        if not 1 <= index <= len(self.entries):
            raise PartialBatchError(f"source_index {index} out of range 1..{len(self.entries)}")
        if index in claimed:
            raise PartialBatchError(f"source_index {index} already used by another item")
        claimed.add(index)
        entry = self.entries[index - 1]

        title = _text(raw.get("title"))
        if not title:
            title = "Untitled"
            self._fallback("title", raw.get("title"), title)

        item_type = self._item_type(raw.get("type"), entry)
        priority = self._priority(raw.get("priority"))
        event_time = self._event_time(raw.get("time"), entry, item_type)

        if item_type is FeedItemType.CALENDAR_EVENT and event_time is not None:
            expires_at = event_time + EVENT_GRACE
        else:
            expires_at = self.now + DEFAULT_TTL

        item_id = uuid.uuid4().hex
        metadata = dict(raw["metadata"]) if isinstance(raw.get("metadata"), dict) else {}
        metadata["context_id"] = entry.id

        return FeedItem(
            id=item_id,
            user_id=self.user_id,
            type=item_type,
            priority=priority,
            timestamp=event_time or entry.created_at,
            expires_at=expires_at,
            title=title[:200],
            subtitle=_text(raw.get("subtitle")) or None,
            description=_text(raw.get("description") or raw.get("summary")) or None,
            source=FeedSource(
                type=ORIGIN_BY_SOURCE[entry.source],
                integration_name=entry.source.value,
                source_url=_text(raw.get("source_url")) or None,
            ),
            source_id=entry.composite_key,
            metadata=metadata,
            tags=_string_list(raw.get("tags")),
            related_items=_string_list(raw.get("related_items")),
            created_at=self.now,
            updated_at=self.now,
            actions=self._actions(item_id, raw.get("actions")),
        )

    def _item_type(self, value: Any, entry: ContextEntry) -> FeedItemType:
        try:
            return FeedItemType(str(value).strip().lower())
        except ValueError:
            inferred = TYPE_BY_SOURCE.get(entry.source, FeedItemType.NOTIFICATION)
            self._fallback("item type", value, inferred.value)
            return inferred

    def _priority(self, value: Any) -> FeedItemPriority:
        try:
            return FeedItemPriority(str(value).strip().lower())
        except ValueError:
            self._fallback("priority", value, FeedItemPriority.MEDIUM.value)
            return FeedItemPriority.MEDIUM

    def _event_time(self, value: Any, entry: ContextEntry, item_type: FeedItemType) -> Optional[datetime]:
        """Model-provided time, else the Start: line of a calendar entry.

        A clock-only model time ("14:00") lands on the Start: date when there
        is one, otherwise on today's date.
        """
        start = None
        if item_type is FeedItemType.CALENDAR_EVENT and entry.source is ContextSource.CALENDAR:
            match = _START_LINE.search(entry.content)
            if match:
                start = self._parse_time(match.group(1).strip(), self.now)

        if isinstance(value, str) and value.strip():
            parsed = self._parse_time(value.strip(), start or self.now)
            if parsed is not None:
                return parsed
            logger.warning("Unparseable time %r for %s", value, entry.composite_key)
        return start

    def _parse_time(self, value: str, day: datetime) -> Optional[datetime]:
        try:
            return parse_datetime(value)
        except ValueError:
            pass
        clock = _CLOCK_TIME.match(value)
        if clock:
            hour, minute = int(clock.group(1)), int(clock.group(2))
            if hour < 24 and minute < 60:
                return day.replace(hour=hour, minute=minute, second=0, microsecond=0)
        return None

    def _actions(self, item_id: str, raw_actions: Any) -> list[FeedAction]:
        if not isinstance(raw_actions, list):
            return []

        actions = []
        for raw in raw_actions[:MAX_ACTIONS]:
            if not isinstance(raw, dict) or not _text(raw.get("label")):
                logger.warning("Dropping action without a label: %r", raw)
                continue

            try:
                action_type = ActionType(str(raw.get("type")).strip().lower())
            except ValueError:
                self._fallback("action type", raw.get("type"), ActionType.CUSTOM.value)
                action_type = ActionType.CUSTOM

            style = ActionStyle.SECONDARY
            if raw.get("style") is not None:
                try:
                    style = ActionStyle(str(raw["style"]).strip().lower())
                except ValueError:
                    self._fallback("action style", raw["style"], style.value)

            actions.append(FeedAction(
                id=uuid.uuid4().hex,
                feed_item_id=item_id,
                label=_text(raw["label"])[:60],
                type=action_type,
                style=style,
                config=raw["config"] if isinstance(raw.get("config"), dict) else {},
                icon=_text(raw.get("icon")) or None,
                requires_confirmation=bool(raw.get("requires_confirmation", False)),
                confirmation_message=_text(raw.get("confirmation_message")) or None,
                is_async=bool(raw.get("is_async", False)),
                loading_text=_text(raw.get("loading_text")) or None,
                success_message=_text(raw.get("success_message")) or None,
                error_message=_text(raw.get("error_message")) or None,
            ))
        return actions


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _string_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]
