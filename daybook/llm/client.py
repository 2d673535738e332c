"""LLM client abstraction for running prompts against Gemini or Claude.

Two entry points:
  run()        system + single user message → text (feed path, no tools)
  complete()   system + conversation + tool schemas → text and/or tool calls
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

from daybook.config import get_api_key
from daybook.errors import ProviderError
from daybook.llm.base import Completion, ToolCall
from daybook.tools.base import ToolSpec

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 4096


class LLMClient:
    """Unified interface for calling Gemini or Claude APIs."""

    def __init__(
        self,
        provider: str = "gemini",
        model: Optional[str] = None,
        temperature: float = 0.3,
    ):
        self.provider = provider.lower()
        self.temperature = temperature

        if self.provider == "gemini":
            self.model = model or "gemini-2.5-flash"
            self._init_gemini()
        elif self.provider == "claude":
            self.model = model or "claude-haiku-4-5-20251001"
            self._init_claude()
        else:
            raise ValueError(f"Unsupported provider: {provider}. Use 'gemini' or 'claude'.")

    def _init_gemini(self):
        try:
            from google import genai
        except ImportError:
            raise ImportError("Install google-genai: pip install google-genai")

        api_key = get_api_key("GEMINI_API_KEY")
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY not found. Either:\n"
                "  • Run: daybook set-key gemini\n"
                "  • Or:  export GEMINI_API_KEY='your-key'"
            )
        self._gemini_client = genai.Client(api_key=api_key)

    def _init_claude(self):
        try:
            import anthropic
        except ImportError:
            raise ImportError("Install anthropic: pip install anthropic")

        api_key = get_api_key("ANTHROPIC_API_KEY")
        if not api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY not found. Either:\n"
                "  • Run: daybook set-key claude\n"
                "  • Or:  export ANTHROPIC_API_KEY='sk-ant-...'"
            )
        self._claude_client = anthropic.Anthropic(api_key=api_key)

    # ══════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════

    def run(self, system_prompt: str, user_message: str, temperature: Optional[float] = None) -> str:
        """Send system + user message to the LLM and return the text response."""
        completion = self.complete(
            system_prompt, [{"role": "user", "content": user_message}], temperature=temperature,
        )
        return completion.text

    def complete(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolSpec]] = None,
        temperature: Optional[float] = None,
    ) -> Completion:
        """Run one model turn over the conversation, optionally offering tools.

        `temperature` overrides the client default for this call only.
        """
        if temperature is None:
            temperature = self.temperature
        if self.provider == "gemini":
            return self._complete_gemini(system_prompt, messages, tools, temperature)
        return self._complete_claude(system_prompt, messages, tools, temperature)

    # ══════════════════════════════════════════════════════════════
    # Gemini
    # ══════════════════════════════════════════════════════════════

    def _complete_gemini(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolSpec]],
        temperature: float,
    ) -> Completion:
        from google.genai import errors, types

        config_kwargs: Dict[str, Any] = {
            "system_instruction": system_prompt,
            "max_output_tokens": MAX_OUTPUT_TOKENS,
            "temperature": temperature,
        }
        if tools:
            config_kwargs["tools"] = [types.Tool(function_declarations=[
                types.FunctionDeclaration(
                    name=spec.name,
                    description=spec.description,
                    parameters_json_schema=spec.json_schema(),
                )
                for spec in tools
            ])]

        try:
            response = self._gemini_client.models.generate_content(
                model=self.model,
                contents=_to_gemini_contents(messages),
                config=types.GenerateContentConfig(**config_kwargs),
            )
        except errors.APIError as exc:
            logger.error("Gemini generate failed: %s", exc)
            raise ProviderError(f"Generation request failed: {exc}") from exc

        # Extract text from response parts (skip thinking parts)
        text_parts = []
        if response.candidates and response.candidates[0].content:
            for part in response.candidates[0].content.parts or []:
                if part.text and not getattr(part, "thought", False):
                    text_parts.append(part.text)

        tool_calls = [
            ToolCall(
                id=fc.id or f"call_{uuid.uuid4().hex[:12]}",
                name=fc.name,
                arguments=dict(fc.args or {}),
            )
            for fc in (response.function_calls or [])
        ]
        return Completion(text="".join(text_parts), tool_calls=tool_calls)

    # ══════════════════════════════════════════════════════════════
    # Claude
    # ══════════════════════════════════════════════════════════════

    def _complete_claude(
        self,
        system_prompt: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[ToolSpec]],
        temperature: float,
    ) -> Completion:
        import anthropic

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "max_tokens": MAX_OUTPUT_TOKENS,
            "temperature": temperature,
            "system": system_prompt,
            "messages": _to_claude_messages(messages),
        }
        if tools:
            kwargs["tools"] = [
                {"name": s.name, "description": s.description, "input_schema": s.json_schema()}
                for s in tools
            ]

        try:
            response = self._claude_client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            logger.error("Claude generate failed: %s", exc)
            raise ProviderError(f"Generation request failed: {exc}") from exc

        text_parts = []
        tool_calls = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(id=block.id, name=block.name, arguments=dict(block.input or {})))
        return Completion(text="".join(text_parts), tool_calls=tool_calls)


# ══════════════════════════════════════════════════════════════════
# Message conversion
# ══════════════════════════════════════════════════════════════════


def _to_gemini_contents(messages: List[Dict[str, Any]]) -> list:
    """Neutral messages → Gemini Content list. Consecutive tool results share one turn."""
    from google.genai import types

    contents: list = []
    for msg in messages:
        role = msg["role"]
        if role == "user":
            contents.append(types.Content(role="user", parts=[types.Part(text=msg["content"])]))
        elif role == "assistant":
            parts = []
            if msg.get("content"):
                parts.append(types.Part(text=msg["content"]))
            for call in msg.get("tool_calls", []):
                parts.append(types.Part(function_call=types.FunctionCall(
                    id=call.id, name=call.name, args=call.arguments,
                )))
            contents.append(types.Content(role="model", parts=parts))
        elif role == "tool":
            part = types.Part(function_response=types.FunctionResponse(
                id=msg["tool_call_id"],
                name=msg["name"],
                response={"result": json.loads(msg["content"])},
            ))
            prev = contents[-1] if contents else None
            if prev is not None and prev.role == "user" and prev.parts and prev.parts[0].function_response:
                prev.parts.append(part)
            else:
                contents.append(types.Content(role="user", parts=[part]))
        else:
            raise ValueError(f"Unknown message role: {role}")
    return contents


def _to_claude_messages(messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Neutral messages → Anthropic messages. Consecutive tool results share one user turn."""
    out: List[Dict[str, Any]] = []
    for msg in messages:
        role = msg["role"]
        if role == "user":
            out.append({"role": "user", "content": msg["content"]})
        elif role == "assistant":
            blocks: List[Dict[str, Any]] = []
            if msg.get("content"):
                blocks.append({"type": "text", "text": msg["content"]})
            for call in msg.get("tool_calls", []):
                blocks.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments})
            out.append({"role": "assistant", "content": blocks})
        elif role == "tool":
            block = {"type": "tool_result", "tool_use_id": msg["tool_call_id"], "content": msg["content"]}
            prev = out[-1] if out else None
            if (
                prev is not None
                and prev["role"] == "user"
                and isinstance(prev["content"], list)
                and prev["content"]
                and prev["content"][0].get("type") == "tool_result"
            ):
                prev["content"].append(block)
            else:
                out.append({"role": "user", "content": [block]})
        else:
            raise ValueError(f"Unknown message role: {role}")
    return out
