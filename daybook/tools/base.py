"""Tool descriptors and the result envelope shared by every external capability."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PARAMETER_TYPES = {"string", "number", "integer", "boolean"}


@dataclass
class ToolParameter:
    name: str
    type: str
    description: str
    required: bool = True

    def __post_init__(self):
        if self.type not in PARAMETER_TYPES:
            raise ValueError(f"Unsupported parameter type: {self.type}")


@dataclass
class ToolSpec:
    """Name, description and parameter schema advertised to the model."""

    name: str
    description: str
    parameters: List[ToolParameter] = field(default_factory=list)

    def json_schema(self) -> Dict[str, Any]:
        """JSON-schema object describing the parameters (used by both providers)."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": p.type, "description": p.description}
                for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }


@dataclass
class ToolResult:
    tool_name: str
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {"tool_name": self.tool_name, "result": self.result, "error": self.error}


class Tool:
    """Base class for an executable tool.

    Subclasses set `spec` and implement `run(**params)`, raising
    `daybook.errors.ToolError` for expected failures.
    """

    spec: ToolSpec

    @property
    def name(self) -> str:
        return self.spec.name

    def run(self, **params: Any) -> Dict[str, Any]:
        raise NotImplementedError
