"""Batch ingestion of calendar events and emails into the context store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from daybook.context.models import ContextSource
from daybook.context.store import ContextStore
from daybook.errors import ProviderError, ValidationError
from daybook.ingest.render import render_calendar_event, render_email

logger = logging.getLogger(__name__)

RENDERERS: dict[ContextSource, Callable[[dict[str, Any]], str]] = {
    ContextSource.CALENDAR: render_calendar_event,
    ContextSource.MAIL: render_email,
}


@dataclass
class IngestResult:
    processed: int = 0
    errors: int = 0
    skipped: int = 0


def ingest_records(
    store: ContextStore,
    user_id: str,
    source: ContextSource | str,
    records: Iterable[dict[str, Any]],
) -> IngestResult:
    """Render and upsert each record, keyed by its `id`.

    One bad record never stops the batch: records without an id or with no
    renderable content are skipped, and embedding failures are counted as
    errors. Re-ingesting the same ids updates the existing entries.
    """
    source = ContextSource.parse(source)
    renderer = RENDERERS.get(source)
    if renderer is None:
        raise ValidationError(f"Source {source.value} is not ingested in batches; use the profile commands")

    result = IngestResult()
    for record in records:
        record_id = record.get("id") if isinstance(record, dict) else None
        if not record_id:
            logger.warning("Skipping %s record without an id", source.value)
            result.skipped += 1
            continue

        content = renderer(record)
        if not content.strip():
            logger.warning("Skipping %s record %s: nothing to render", source.value, record_id)
            result.skipped += 1
            continue

        try:
            store.upsert_context(user_id, source, str(record_id), content)
        except ProviderError as exc:
            logger.error("Error processing %s record %s: %s", source.value, record_id, exc)
            result.errors += 1
            continue
        result.processed += 1

    logger.info(
        "Ingested %s for %s: processed=%d errors=%d skipped=%d",
        source.value, user_id, result.processed, result.errors, result.skipped,
    )
    return result
