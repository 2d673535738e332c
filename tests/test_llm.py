"""
Tests for the LLM layer: prompt loading, output cleanup, message conversion
and provider response parsing (SDK clients mocked)
"""

import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import pytest

from daybook.errors import ProviderError
from daybook.llm.base import ToolCall
from daybook.llm.client import LLMClient, _to_claude_messages, _to_gemini_contents
from daybook.llm.loader import load_prompt, load_prompt_file
from daybook.llm.parsing import strip_code_fences
from daybook.tools.clock import ClockTool


def _conversation():
    return [
        {"role": "user", "content": "How long is my commute and is it raining?"},
        {
            "role": "assistant",
            "content": "Checking.",
            "tool_calls": [
                ToolCall(id="c1", name="get_directions", arguments={"origin": "Home", "destination": "Work"}),
                ToolCall(id="c2", name="get_weather", arguments={"location": "Seattle"}),
            ],
        },
        {"role": "tool", "tool_call_id": "c1", "name": "get_directions", "content": json.dumps({"duration": "20 mins"})},
        {"role": "tool", "tool_call_id": "c2", "name": "get_weather", "content": json.dumps({"error": "boom"})},
    ]


class TestPromptLoader:
    """Tests for markdown prompt definitions"""

    def test_bundled_prompts_render(self):
        answer = load_prompt("answer_system")
        text = answer.render(current_time="2026-03-02T08:00:00+00:00", tool_descriptions="- get_current_time: x")

        assert "Current time: 2026-03-02T08:00:00+00:00" in text
        assert "- get_current_time: x" in text

        feed = load_prompt("feed_generate")
        assert feed.variables == ["current_time"]
        assert "source_index" in feed.render(current_time="now")

    def test_model_params_temperature(self, tmp_path):
        assert load_prompt("answer_system").temperature == 0.7
        assert load_prompt("feed_generate").temperature == 0.3

        path = tmp_path / "bare.md"
        path.write_text("---\nprompt_name: bare\n---\nBody")
        assert load_prompt_file(path).temperature is None

    def test_missing_variable(self):
        with pytest.raises(KeyError):
            load_prompt("answer_system").render(current_time="now")

    def test_missing_prompt(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_prompt("nope", prompts_dir=tmp_path)

    def test_file_without_frontmatter_skipped(self, tmp_path):
        path = tmp_path / "plain.md"
        path.write_text("Just a body")
        assert load_prompt_file(path) is None

        with pytest.raises(ValueError):
            load_prompt("plain", prompts_dir=tmp_path)


class TestStripCodeFences:
    def test_fenced(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_untouched(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestMessageConversion:
    """Tests for neutral → provider message shapes"""

    def test_claude_merges_tool_results(self):
        out = _to_claude_messages(_conversation())

        assert [m["role"] for m in out] == ["user", "assistant", "user"]
        assert out[1]["content"][0] == {"type": "text", "text": "Checking."}
        assert out[1]["content"][1] == {
            "type": "tool_use", "id": "c1", "name": "get_directions",
            "input": {"origin": "Home", "destination": "Work"},
        }
        assert [b["tool_use_id"] for b in out[2]["content"]] == ["c1", "c2"]

    def test_gemini_merges_tool_results(self):
        contents = _to_gemini_contents(_conversation())

        assert [c.role for c in contents] == ["user", "model", "user"]
        assert contents[1].parts[1].function_call.name == "get_directions"
        responses = [p.function_response for p in contents[2].parts]
        assert [r.name for r in responses] == ["get_directions", "get_weather"]
        assert responses[1].response == {"result": {"error": "boom"}}

    def test_unknown_role(self):
        with pytest.raises(ValueError):
            _to_claude_messages([{"role": "system", "content": "x"}])


class TestLLMClient:
    """Tests for LLMClient with the SDK clients mocked"""

    def test_unsupported_provider(self):
        with pytest.raises(ValueError):
            LLMClient(provider="llama")

    def test_missing_key(self):
        with patch("daybook.llm.client.get_api_key", return_value=None):
            with pytest.raises(ValueError, match="daybook set-key claude"):
                LLMClient(provider="claude")

    def _claude(self):
        with patch("daybook.llm.client.get_api_key", return_value="sk-ant-test"), \
                patch("anthropic.Anthropic") as factory:
            client = LLMClient(provider="claude")
        return client, factory.return_value

    def test_claude_parses_text_and_tool_use(self):
        client, sdk = self._claude()
        sdk.messages.create.return_value = SimpleNamespace(content=[
            SimpleNamespace(type="text", text="Let me check the time."),
            SimpleNamespace(type="tool_use", id="toolu_1", name="get_current_time", input={"timezone": "UTC"}),
        ])

        completion = client.complete("system", [{"role": "user", "content": "time?"}], tools=[ClockTool.spec])

        assert completion.text == "Let me check the time."
        assert completion.tool_calls == [ToolCall(id="toolu_1", name="get_current_time",
                                                  arguments={"timezone": "UTC"})]
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["tools"][0]["name"] == "get_current_time"
        assert kwargs["tools"][0]["input_schema"]["type"] == "object"

    def test_claude_run_returns_text(self):
        client, sdk = self._claude()
        sdk.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(type="text", text="hi")])

        assert client.run("system", "hello") == "hi"
        assert "tools" not in sdk.messages.create.call_args.kwargs

    def test_claude_api_error_wrapped(self):
        client, sdk = self._claude()
        sdk.messages.create.side_effect = anthropic.APIConnectionError(request=MagicMock())

        with pytest.raises(ProviderError):
            client.run("system", "hello")

    def test_gemini_skips_thoughts_and_reads_function_calls(self):
        with patch("daybook.llm.client.get_api_key", return_value="gem-key"), \
                patch("google.genai.Client") as factory:
            client = LLMClient(provider="gemini")
        sdk = factory.return_value
        sdk.models.generate_content.return_value = SimpleNamespace(
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[
                SimpleNamespace(text="internal reasoning", thought=True),
                SimpleNamespace(text="Checking weather.", thought=False),
            ]))],
            function_calls=[SimpleNamespace(id=None, name="get_weather", args={"location": "Seattle"})],
        )

        completion = client.complete("system", [{"role": "user", "content": "rain?"}], tools=[ClockTool.spec])

        assert completion.text == "Checking weather."
        assert completion.tool_calls[0].name == "get_weather"
        assert completion.tool_calls[0].arguments == {"location": "Seattle"}
        assert completion.tool_calls[0].id.startswith("call_")

    def test_call_temperature_overrides_default(self):
        client, sdk = self._claude()
        sdk.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(type="text", text="ok")])

        client.run("system", "hello")
        assert sdk.messages.create.call_args.kwargs["temperature"] == 0.3

        client.run("system", "hello", temperature=0.7)
        assert sdk.messages.create.call_args.kwargs["temperature"] == 0.7
