"""Exception taxonomy shared by all Daybook components.

ValidationError       malformed caller input, never retried
ProviderError         embedding / generation model failure, terminal for the call
DataIntegrityError    a uniqueness violation reached the application layer
PartialBatchError     one bad item inside a feed batch (counted, not raised out)
ToolError             expected tool failure, surfaced as ToolResult.error
"""

from __future__ import annotations

from typing import Any, Optional


class DaybookError(Exception):
    """Base exception for Daybook errors."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationError(DaybookError):
    """Caller supplied input that can never succeed as given."""


class NotFoundError(ValidationError):
    """A referenced record does not exist."""


class ProviderError(DaybookError):
    """An embedding or generation provider failed."""


class FeedParseError(ProviderError):
    """The model's feed response could not be parsed as structured data."""


class DataIntegrityError(DaybookError):
    """A composite-uniqueness constraint was violated on write.

    Upserts absorb the expected duplicates, so seeing this means two writers
    raced past the idempotency check or the storage layer lost its index.
    """


class PartialBatchError(DaybookError):
    """A single item of a feed batch was malformed."""


class ToolError(DaybookError):
    """Expected tool failure (missing credential, no route, bad input)."""
