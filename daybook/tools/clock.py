"""Current-time tool. No external API."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from daybook.db import utcnow
from daybook.errors import ToolError
from daybook.tools.base import Tool, ToolParameter, ToolSpec


class ClockTool(Tool):
    spec = ToolSpec(
        name="get_current_time",
        description="Get the current date and time. Use this to calculate time-based information.",
        parameters=[
            ToolParameter(
                "timezone", "string",
                "IANA timezone, e.g. 'America/Los_Angeles' (optional)",
                required=False,
            ),
        ],
    )

    def __init__(self, now: Callable[[], datetime] = utcnow):
        self._now = now

    def run(self, timezone: Optional[str] = None) -> Dict[str, Any]:
        now = self._now()
        result: Dict[str, Any] = {
            "iso": now.isoformat(),
            "timestamp": int(now.timestamp() * 1000),
            "date": now.strftime("%a %b %d %Y"),
            "time": now.strftime("%H:%M:%S %Z"),
        }
        if timezone:
            try:
                tz = ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ToolError(f"Invalid timezone: {timezone}") from exc
            local = now.astimezone(tz)
            result["local_time"] = local.strftime("%m/%d/%Y, %I:%M:%S %p")
            result["timezone"] = timezone
        return result
