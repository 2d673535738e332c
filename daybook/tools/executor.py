"""Tool registry and dispatcher.

`execute` never raises for expected failures: unknown tools, bad parameters,
missing credentials and provider errors all come back as `ToolResult.error`
so the answer loop can feed them to the model. Anything else is a bug and
propagates.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from daybook.config import DaybookConfig, get_api_key
from daybook.errors import ToolError
from daybook.tools.base import Tool, ToolParameter, ToolResult, ToolSpec
from daybook.tools.clock import ClockTool
from daybook.tools.maps import DirectionsTool, GoogleMapsClient, PlacesTool
from daybook.tools.weather import WeatherTool

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Holds the registered tools and runs them by name."""

    def __init__(self, tools: Iterable[Tool]):
        self._tools: Dict[str, Tool] = {}
        for tool in tools:
            if tool.name in self._tools:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            self._tools[tool.name] = tool

    def list_tools(self) -> List[ToolSpec]:
        return [t.spec for t in self._tools.values()]

    def describe(self) -> str:
        """One bullet per tool, for system prompts."""
        return "\n".join(f"- {s.name}: {s.description}" for s in self.list_tools())

    def execute(self, tool_name: str, params: Optional[Dict[str, Any]] = None) -> ToolResult:
        tool = self._tools.get(tool_name)
        if tool is None:
            logger.warning("Model requested unknown tool: %s", tool_name)
            return ToolResult(tool_name=tool_name, error=f"Unknown tool: {tool_name}")

        logger.info("Calling tool %s with %s", tool_name, params)
        try:
            kwargs = _validate_params(tool.spec, params or {})
            result = tool.run(**kwargs)
        except (ToolError, requests.RequestException) as exc:
            logger.warning("Tool %s failed: %s", tool_name, exc)
            return ToolResult(tool_name=tool_name, error=str(exc))

        return ToolResult(tool_name=tool_name, result=result)


def _validate_params(spec: ToolSpec, params: Dict[str, Any]) -> Dict[str, Any]:
    """Check required parameters and coerce types. Unknown keys are dropped."""
    known = {p.name: p for p in spec.parameters}
    for key in params:
        if key not in known:
            logger.debug("Ignoring unknown parameter %s for %s", key, spec.name)

    kwargs: Dict[str, Any] = {}
    for param in spec.parameters:
        value = params.get(param.name)
        if value is None or (isinstance(value, str) and not value.strip()):
            if param.required:
                raise ToolError(f"Missing required parameter: {param.name}")
            continue
        kwargs[param.name] = _coerce(param, value)
    return kwargs


def _coerce(param: ToolParameter, value: Any) -> Any:
    if param.type == "string":
        if not isinstance(value, str):
            raise ToolError(f"Parameter {param.name} must be a string")
        return value.strip()
    if param.type in ("number", "integer"):
        if isinstance(value, bool):
            raise ToolError(f"Parameter {param.name} must be a number")
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise ToolError(f"Parameter {param.name} must be a number, got {value!r}")
        return int(number) if param.type == "integer" else number
    if param.type == "boolean":
        if not isinstance(value, bool):
            raise ToolError(f"Parameter {param.name} must be a boolean")
        return value
    return value


def default_tools(config: DaybookConfig, session: Optional[requests.Session] = None) -> ToolExecutor:
    """The four standard tools, with credentials resolved from env / Keychain."""
    session = session or requests.Session()
    maps = GoogleMapsClient(get_api_key("GOOGLE_MAPS_API_KEY"), session=session, timeout=config.http_timeout)
    return ToolExecutor([
        DirectionsTool(maps),
        PlacesTool(maps),
        WeatherTool(get_api_key("WEATHER_API_KEY"), session=session, timeout=config.http_timeout),
        ClockTool(),
    ])
