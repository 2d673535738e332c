"""
Tests for AnswerSynthesizer: retrieval, the bounded tool loop and fallbacks
"""

import json
from datetime import timedelta

import pytest

from daybook.agent.answer import FALLBACK_ANSWER, MAX_TOOL_ROUNDS, AnswerSynthesizer, format_question
from daybook.errors import ProviderError, ValidationError
from daybook.llm.base import Completion, ToolCall
from daybook.tools.clock import ClockTool
from daybook.tools.executor import ToolExecutor
from tests.conftest import NOW, ScriptedLLM, text_completion


def _tool_completion(*calls, text=""):
    return Completion(
        text=text,
        tool_calls=[ToolCall(id=f"call-{i}", name=name, arguments=args) for i, (name, args) in enumerate(calls)],
    )


@pytest.fixture
def tools():
    return ToolExecutor([ClockTool(now=lambda: NOW)])


def _synth(ranker, llm, tools):
    return AnswerSynthesizer(ranker, llm, tools, now=lambda: NOW)


class TestAnswer:
    """Tests for AnswerSynthesizer.answer"""

    def test_direct_answer_without_tools(self, context_store, ranker, tools):
        """One model call, context excerpts in the user message"""
        context_store.upsert_context(
            "u1", "calendar", "e1", "Event: Dentist\nStart: 2026-03-03T10:00:00Z", now=NOW - timedelta(hours=1),
        )
        llm = ScriptedLLM(completions=[text_completion("Your dentist appointment is Tuesday at 10am.")])

        result = _synth(ranker, llm, tools).answer("u1", "When is my dentist appointment?")

        assert result.answer == "Your dentist appointment is Tuesday at 10am."
        assert result.tools_used == []
        assert [s.id for s in result.sources] == [context_store.list_by_user("u1")[0].id]

        call = llm.complete_calls[0]
        user_message = call["messages"][0]["content"]
        assert "[1] Source: calendar\nEvent: Dentist" in user_message
        assert user_message.endswith("Question: When is my dentist appointment?")
        assert NOW.isoformat() in call["system"]
        assert "get_current_time" in call["system"]
        assert [s.name for s in call["tools"]] == ["get_current_time"]
        assert call["temperature"] == 0.7

    def test_no_context(self, ranker, tools):
        llm = ScriptedLLM(completions=[text_completion("I don't have anything on that.")])

        result = _synth(ranker, llm, tools).answer("u1", "What's on today?")

        assert result.sources == []
        assert "(no stored context)" in llm.complete_calls[0]["messages"][0]["content"]

    def test_tool_round_feeds_results_back(self, ranker, tools):
        """Tool results are appended as tool messages before the next call"""
        llm = ScriptedLLM(completions=[
            _tool_completion(("get_current_time", {"timezone": "America/New_York"})),
            text_completion("It is 3am in New York."),
        ])

        result = _synth(ranker, llm, tools).answer("u1", "What time is it in New York?")

        assert result.answer == "It is 3am in New York."
        assert len(result.tools_used) == 1
        assert result.tools_used[0].ok

        second = llm.complete_calls[1]["messages"]
        assert [m["role"] for m in second] == ["user", "assistant", "tool"]
        assert second[1]["tool_calls"][0].name == "get_current_time"
        tool_message = second[2]
        assert tool_message["tool_call_id"] == "call-0"
        assert tool_message["name"] == "get_current_time"
        assert json.loads(tool_message["content"])["timezone"] == "America/New_York"

    def test_tool_errors_are_reported_to_model(self, ranker, tools):
        """Unknown tools become error payloads, not exceptions"""
        llm = ScriptedLLM(completions=[
            _tool_completion(("book_flight", {"to": "SEA"})),
            text_completion("I can't book flights."),
        ])

        result = _synth(ranker, llm, tools).answer("u1", "Book me a flight")

        assert result.answer == "I can't book flights."
        assert result.tools_used[0].error == "Unknown tool: book_flight"
        tool_message = llm.complete_calls[1]["messages"][-1]
        assert json.loads(tool_message["content"]) == {"error": "Unknown tool: book_flight"}

    def test_loop_is_capped(self, ranker, tools):
        """A model that keeps asking for tools gets exactly MAX_TOOL_ROUNDS calls"""
        llm = ScriptedLLM(completions=[
            _tool_completion(("get_current_time", {}), text=f"thinking {i}")
            for i in range(MAX_TOOL_ROUNDS)
        ])

        result = _synth(ranker, llm, tools).answer("u1", "What time is it?")

        assert len(llm.complete_calls) == MAX_TOOL_ROUNDS
        assert result.answer == f"thinking {MAX_TOOL_ROUNDS - 1}"
        assert len(result.tools_used) == MAX_TOOL_ROUNDS

    def test_fallback_when_model_returns_nothing(self, ranker, tools):
        llm = ScriptedLLM(completions=[
            _tool_completion(("get_current_time", {})) for _ in range(MAX_TOOL_ROUNDS)
        ])

        result = _synth(ranker, llm, tools).answer("u1", "What time is it?")

        assert result.answer == FALLBACK_ANSWER

    def test_sources_are_truncated(self, context_store, ranker, tools):
        context_store.upsert_context("u1", "mail", "m1", "Email: " + "a" * 400, now=NOW)
        llm = ScriptedLLM(completions=[text_completion("ok")])

        result = _synth(ranker, llm, tools).answer("u1", "anything from mail?")

        assert len(result.sources) == 1
        assert result.sources[0].content.endswith("...")
        assert len(result.sources[0].content) == 203

    def test_empty_question_rejected(self, ranker, tools):
        llm = ScriptedLLM()
        with pytest.raises(ValidationError):
            _synth(ranker, llm, tools).answer("u1", "   ")
        assert llm.complete_calls == []

    def test_provider_errors_propagate(self, ranker, tools):
        class DownLLM(ScriptedLLM):
            def complete(self, system_prompt, messages, tools=None, temperature=None):
                raise ProviderError("generation unavailable")

        with pytest.raises(ProviderError):
            _synth(ranker, DownLLM(), tools).answer("u1", "Anything?")


def test_format_question_numbers_excerpts(context_store, ranker):
    context_store.upsert_context("u1", "calendar", "e1", "Event: A", now=NOW)
    context_store.upsert_context("u1", "mail", "m1", "Email: B", now=NOW - timedelta(minutes=5))
    entries = ranker.recent_context("u1", now=NOW)

    text = format_question(entries, "Q?")

    assert text.startswith("User context from calendar and other sources:\n\n[1] Source: calendar\nEvent: A\n")
    assert "[2] Source: mail\nEmail: B\n" in text
    assert text.endswith("\nQuestion: Q?")
