"""Answer a free-form question from the user's context, with real-time tools.

Flow:
  1. Blended retrieval (semantic + last 24h) from the RetrievalRanker
  2. Numbered, source-tagged excerpts become the user message
  3. Up to MAX_TOOL_ROUNDS model calls; each round's tool calls are executed
     and their results appended to the conversation before the next call
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from daybook.context.models import ContextSource, ScoredEntry
from daybook.context.ranker import RetrievalRanker
from daybook.context.store import truncate
from daybook.db import utcnow
from daybook.errors import ValidationError
from daybook.llm.base import GenerationProvider
from daybook.llm.loader import PromptDefinition, load_prompt
from daybook.tools.base import ToolResult
from daybook.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

MAX_TOOL_ROUNDS = 3
FALLBACK_ANSWER = "Unable to generate answer."
SOURCE_PREVIEW_CHARS = 200


@dataclass
class AnswerSource:
    id: str
    source: ContextSource
    content: str
    created_at: datetime
    score: float
    similarity: Optional[float] = None


@dataclass
class AnswerResult:
    answer: str
    sources: list[AnswerSource] = field(default_factory=list)
    tools_used: list[ToolResult] = field(default_factory=list)


class AnswerSynthesizer:
    """Retrieval-augmented answering with a bounded tool loop."""

    def __init__(
        self,
        ranker: RetrievalRanker,
        llm: GenerationProvider,
        tools: ToolExecutor,
        semantic_limit: int = 5,
        recent_limit: int = 3,
        window_hours: float = 24,
        prompt: PromptDefinition | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.ranker = ranker
        self.llm = llm
        self.tools = tools
        self.semantic_limit = semantic_limit
        self.recent_limit = recent_limit
        self.window_hours = window_hours
        self.prompt = prompt or load_prompt("answer_system")
        self._now = now

    def answer(self, user_id: str, question: str) -> AnswerResult:
        if not question or not question.strip():
            raise ValidationError("question must not be empty")

        now = self._now()
        context = self.ranker.relevant_context(
            user_id,
            question,
            semantic_limit=self.semantic_limit,
            recent_limit=self.recent_limit,
            window_hours=self.window_hours,
            now=now,
        )

        system_prompt = self.prompt.render(
            current_time=now.isoformat(),
            tool_descriptions=self.tools.describe(),
        )
        messages = [{"role": "user", "content": format_question(context.combined, question)}]
        specs = self.tools.list_tools()

        tools_used: list[ToolResult] = []
        answer_text = ""
        for round_no in range(1, MAX_TOOL_ROUNDS + 1):
            completion = self.llm.complete(
                system_prompt, messages, tools=specs, temperature=self.prompt.temperature,
            )
            answer_text = completion.text

            if not completion.tool_calls:
                break

            logger.debug("Round %d: model requested %d tool call(s)", round_no, len(completion.tool_calls))
            messages.append({
                "role": "assistant",
                "content": completion.text,
                "tool_calls": completion.tool_calls,
            })
            for call in completion.tool_calls:
                result = self.tools.execute(call.name, call.arguments)
                tools_used.append(result)
                payload = result.result if result.ok else {"error": result.error}
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": json.dumps(payload, default=str),
                })
        else:
            logger.info("Tool loop hit the %d-round cap for user %s", MAX_TOOL_ROUNDS, user_id)

        return AnswerResult(
            answer=answer_text or FALLBACK_ANSWER,
            sources=[_to_source(s) for s in context.combined],
            tools_used=tools_used,
        )


def format_question(entries: list[ScoredEntry], question: str) -> str:
    """Numbered excerpts followed by the question."""
    if entries:
        excerpts = "\n".join(
            f"[{i}] Source: {s.entry.source.value}\n{s.entry.content}\n"
            for i, s in enumerate(entries, start=1)
        )
    else:
        excerpts = "(no stored context)\n"
    return f"User context from calendar and other sources:\n\n{excerpts}\nQuestion: {question}"


def _to_source(scored: ScoredEntry) -> AnswerSource:
    return AnswerSource(
        id=scored.entry.id,
        source=scored.entry.source,
        content=truncate(scored.entry.content, SOURCE_PREVIEW_CHARS),
        created_at=scored.entry.created_at,
        score=scored.score,
        similarity=scored.similarity,
    )
