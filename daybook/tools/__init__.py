from daybook.tools.base import Tool, ToolParameter, ToolResult, ToolSpec
from daybook.tools.executor import ToolExecutor, default_tools

__all__ = [
    "Tool",
    "ToolParameter",
    "ToolResult",
    "ToolSpec",
    "ToolExecutor",
    "default_tools",
]
