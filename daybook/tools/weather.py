"""Weather forecast tool backed by OpenWeatherMap (geocoding + 5-day / 3-hour forecast)."""

from __future__ import annotations

import logging
from datetime import datetime, time, timezone
from typing import Any, Callable, Dict, Optional

import requests

from daybook.db import parse_datetime, utcnow
from daybook.errors import ToolError
from daybook.tools.base import Tool, ToolParameter, ToolSpec

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://api.openweathermap.org/geo/1.0/direct"
FORECAST_URL = "https://api.openweathermap.org/data/2.5/forecast"


class WeatherTool(Tool):
    spec = ToolSpec(
        name="get_weather",
        description=(
            "Get the weather forecast for a location and date. Use this when the user "
            "asks about weather conditions for upcoming events."
        ),
        parameters=[
            ToolParameter("location", "string", "Address or city name"),
            ToolParameter(
                "date", "string",
                "ISO 8601 date or date-time for the forecast (optional, defaults to now)",
                required=False,
            ),
        ],
    )

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        now: Callable[[], datetime] = utcnow,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout
        self._now = now

    def _get(self, url: str, params: Dict[str, Any]) -> Any:
        try:
            resp = self.session.get(url, params={**params, "appid": self.api_key}, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ToolError(f"Weather request failed: {exc}") from exc
        if resp.status_code != 200:
            logger.warning("OpenWeatherMap %s returned %s: %s", url, resp.status_code, resp.text[:200])
            raise ToolError(f"Weather API error: HTTP {resp.status_code}")
        return resp.json()

    def run(self, location: str, date: Optional[str] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise ToolError(
                "Weather API key not configured. "
                "Run: daybook set-key openweather (or export WEATHER_API_KEY)"
            )
        target = self._target_time(date)

        places = self._get(GEOCODE_URL, {"q": location, "limit": 1})
        if not places:
            raise ToolError(f"Location not found: {location}")
        place = places[0]

        forecast = self._get(FORECAST_URL, {"lat": place["lat"], "lon": place["lon"], "units": "imperial"})
        slots = forecast.get("list") or []
        if not slots:
            raise ToolError(f"No forecast available for {location}")

        # nearest 3-hour slot; ties go to the earlier slot
        slot = min(slots, key=lambda s: abs(s["dt"] - target.timestamp()))
        main = slot.get("main", {})
        label = ", ".join(p for p in (place.get("name"), place.get("country")) if p)
        return {
            "location": label or location,
            "date": datetime.fromtimestamp(slot["dt"], tz=timezone.utc).isoformat(),
            "temperature": round(main.get("temp", 0)),
            "feels_like": round(main.get("feels_like", 0)),
            "description": (slot.get("weather") or [{}])[0].get("description", ""),
            "humidity": main.get("humidity"),
            "wind_speed": round((slot.get("wind") or {}).get("speed", 0)),
            "precipitation_chance": round((slot.get("pop") or 0) * 100),
        }

    def _target_time(self, date: Optional[str]) -> datetime:
        if not date:
            return self._now()
        try:
            if len(date.strip()) == 10:
                # date only: aim for midday
                day = datetime.strptime(date.strip(), "%Y-%m-%d").date()
                return datetime.combine(day, time(12, 0), tzinfo=timezone.utc)
            return parse_datetime(date)
        except ValueError as exc:
            raise ToolError(f"Invalid date: {date}") from exc
