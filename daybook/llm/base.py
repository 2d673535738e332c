"""Provider-neutral types for embedding and generation models.

Conversation messages are plain dicts:
    {"role": "user", "content": "..."}
    {"role": "assistant", "content": "...", "tool_calls": [ToolCall, ...]}
    {"role": "tool", "tool_call_id": "...", "name": "...", "content": "<json>"}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Optional, Protocol

import numpy as np

if TYPE_CHECKING:
    from daybook.tools.base import ToolSpec


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class Completion:
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)


class EmbeddingProvider(Protocol):
    dimension: int

    def embed(self, text: str) -> np.ndarray: ...


class GenerationProvider(Protocol):
    def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: Optional[list["ToolSpec"]] = None,
        temperature: Optional[float] = None,
    ) -> Completion: ...

    def run(self, system_prompt: str, user_message: str, temperature: Optional[float] = None) -> str: ...
