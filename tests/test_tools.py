"""
Tests for the tool registry and the four external tools (HTTP mocked)
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from daybook.errors import ToolError
from daybook.tools.base import Tool, ToolParameter, ToolSpec
from daybook.tools.clock import ClockTool
from daybook.tools.executor import ToolExecutor
from daybook.tools.maps import GEOCODE_URL, PLACES_URL, ROUTES_URL, DirectionsTool, GoogleMapsClient, PlacesTool
from daybook.tools.weather import FORECAST_URL, WeatherTool
from tests.conftest import NOW


def _response(payload, status=200):
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = payload
    resp.text = str(payload)
    return resp


class EchoTool(Tool):
    spec = ToolSpec(
        name="echo",
        description="Echo parameters back",
        parameters=[
            ToolParameter("text", "string", "Text to echo"),
            ToolParameter("times", "number", "Repeat count", required=False),
        ],
    )

    def run(self, text, times=None):
        return {"text": text, "times": times}


class BrokenTool(Tool):
    spec = ToolSpec(name="broken", description="Has a bug")

    def run(self):
        raise KeyError("bug")


class TestToolExecutor:
    """Tests for registration, validation and dispatch"""

    def test_json_schema(self):
        schema = EchoTool.spec.json_schema()
        assert schema["type"] == "object"
        assert schema["properties"]["text"] == {"type": "string", "description": "Text to echo"}
        assert schema["required"] == ["text"]

    def test_list_tools(self):
        executor = ToolExecutor([EchoTool(), ClockTool()])
        assert [s.name for s in executor.list_tools()] == ["echo", "get_current_time"]

    def test_duplicate_names_rejected(self):
        with pytest.raises(ValueError):
            ToolExecutor([EchoTool(), EchoTool()])

    def test_unknown_tool_is_error_result(self):
        result = ToolExecutor([EchoTool()]).execute("teleport", {})
        assert result.result is None
        assert result.error == "Unknown tool: teleport"

    def test_missing_required_parameter(self):
        result = ToolExecutor([EchoTool()]).execute("echo", {"times": 2})
        assert not result.ok
        assert "text" in result.error

    def test_number_coercion_and_unknown_keys(self):
        """Numeric strings are accepted, unknown keys dropped"""
        result = ToolExecutor([EchoTool()]).execute("echo", {"text": " hi ", "times": "3", "color": "red"})
        assert result.ok
        assert result.result == {"text": "hi", "times": 3.0}

    def test_bad_number(self):
        result = ToolExecutor([EchoTool()]).execute("echo", {"text": "hi", "times": "lots"})
        assert "number" in result.error

    def test_programming_errors_propagate(self):
        with pytest.raises(KeyError):
            ToolExecutor([BrokenTool()]).execute("broken", {})


class TestClockTool:
    def test_utc(self):
        result = ClockTool(now=lambda: NOW).run()
        assert result["iso"] == NOW.isoformat()
        assert result["timestamp"] == int(NOW.timestamp() * 1000)
        assert "local_time" not in result

    def test_timezone(self):
        result = ClockTool(now=lambda: NOW).run(timezone="America/Los_Angeles")
        assert result["timezone"] == "America/Los_Angeles"
        assert result["local_time"] == "03/02/2026, 12:00:00 AM"

    def test_invalid_timezone_is_error_result(self):
        executor = ToolExecutor([ClockTool(now=lambda: NOW)])
        result = executor.execute("get_current_time", {"timezone": "Mars/Olympus_Mons"})
        assert result.error == "Invalid timezone: Mars/Olympus_Mons"


class TestDirectionsTool:
    """Tests for get_directions against a mocked Routes API"""

    def _tool(self, session, key="maps-key"):
        return DirectionsTool(GoogleMapsClient(key, session=session))

    def test_parses_route(self):
        session = MagicMock()
        steps = [
            {
                "navigationInstruction": {"instructions": f"Step {i}"},
                "localizedValues": {"distance": {"text": "0.5 mi"}, "staticDuration": {"text": "1 min"}},
            }
            for i in range(14)
        ]
        session.post.return_value = _response({"routes": [{
            "distanceMeters": 16093,
            "duration": "1500s",
            "staticDuration": "1200s",
            "localizedValues": {
                "distance": {"text": "10.0 mi"},
                "duration": {"text": "25 mins"},
                "staticDuration": {"text": "20 mins"},
            },
            "legs": [{"steps": steps}],
        }]})

        result = self._tool(session).run("Home", "Office", departure_time="2026-03-02T08:30:00Z")

        assert result["distance"] == "10.0 mi"
        assert result["duration"] == "20 mins"
        assert result["duration_in_traffic"] == "25 mins"
        assert len(result["steps"]) == 10
        assert result["steps"][0] == {"instruction": "Step 0", "distance": "0.5 mi", "duration": "1 min"}

        args, kwargs = session.post.call_args
        assert args[0] == ROUTES_URL
        assert kwargs["headers"]["X-Goog-Api-Key"] == "maps-key"
        assert "routes.duration" in kwargs["headers"]["X-Goog-FieldMask"]
        assert kwargs["json"]["origin"] == {"address": "Home"}
        assert kwargs["json"]["departureTime"] == "2026-03-02T08:30:00Z"

    def test_fallback_formatting_without_localized_values(self):
        session = MagicMock()
        session.post.return_value = _response({"routes": [{"distanceMeters": 8047, "duration": "600s"}]})

        result = self._tool(session).run("A", "B")

        assert result["distance"] == "5 mi"
        assert result["duration_in_traffic"] == "10 min"
        assert result["steps"] == []

    def test_no_route(self):
        session = MagicMock()
        session.post.return_value = _response({})
        with pytest.raises(ToolError, match="No route"):
            self._tool(session).run("A", "B")

    def test_missing_key_makes_no_request(self):
        session = MagicMock()
        result = ToolExecutor([self._tool(session, key=None)]).execute(
            "get_directions", {"origin": "A", "destination": "B"},
        )
        assert "API key not configured" in result.error
        session.post.assert_not_called()

    def test_http_error_status(self):
        session = MagicMock()
        session.post.return_value = _response({"error": "denied"}, status=403)
        result = ToolExecutor([self._tool(session)]).execute("get_directions", {"origin": "A", "destination": "B"})
        assert result.error == "Google Maps API error: HTTP 403"

    def test_network_failure_is_error_result(self):
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("offline")
        result = ToolExecutor([self._tool(session)]).execute("get_directions", {"origin": "A", "destination": "B"})
        assert "offline" in result.error


class TestPlacesTool:
    """Tests for search_places: geocode, then biased text search"""

    def _tool(self, session):
        return PlacesTool(GoogleMapsClient("maps-key", session=session))

    def test_geocodes_then_searches(self):
        session = MagicMock()
        session.get.return_value = _response({
            "status": "OK",
            "results": [{"geometry": {"location": {"lat": 47.61, "lng": -122.33}}}],
        })
        session.post.return_value = _response({"places": [
            {
                "displayName": {"text": "Cafe Uno"},
                "formattedAddress": "1 Pike St",
                "rating": 4.6,
                "currentOpeningHours": {"openNow": True},
                "types": ["cafe"],
            },
            {"displayName": {"text": "Bean There"}},
        ]})

        result = self._tool(session).run("Pike Place Market", "coffee", radius=1000)

        assert [p["name"] for p in result["results"]] == ["Cafe Uno", "Bean There"]
        assert result["results"][0]["open_now"] is True
        assert result["results"][0]["categories"] == ["cafe"]
        assert result["results"][1]["address"] == "No address"

        assert session.get.call_args[0][0] == GEOCODE_URL
        args, kwargs = session.post.call_args
        assert args[0] == PLACES_URL
        circle = kwargs["json"]["locationBias"]["circle"]
        assert circle == {"center": {"latitude": 47.61, "longitude": -122.33}, "radius": 1000.0}
        assert kwargs["json"]["maxResultCount"] == 5

    def test_location_not_found(self):
        session = MagicMock()
        session.get.return_value = _response({"status": "ZERO_RESULTS", "results": []})
        with pytest.raises(ToolError, match="Location not found"):
            self._tool(session).run("Nowhere", "coffee")
        session.post.assert_not_called()

    def test_radius_out_of_range(self):
        with pytest.raises(ToolError, match="radius"):
            self._tool(MagicMock()).run("Seattle", "coffee", radius=100000)


class TestWeatherTool:
    """Tests for get_weather against mocked OpenWeatherMap"""

    def _session(self, slots):
        session = MagicMock()

        def fake_get(url, params=None, timeout=None):
            if url == FORECAST_URL:
                assert params["units"] == "imperial"
                return _response({"list": slots})
            return _response([{"name": "Seattle", "country": "US", "lat": 47.6, "lon": -122.3}])

        session.get.side_effect = fake_get
        return session

    def _slot(self, when, temp):
        return {
            "dt": int(when.timestamp()),
            "main": {"temp": temp, "feels_like": temp - 2.4, "humidity": 80},
            "weather": [{"description": "light rain"}],
            "wind": {"speed": 7.6},
            "pop": 0.46,
        }

    def test_picks_nearest_slot(self):
        slots = [
            self._slot(datetime(2026, 3, 3, 9, tzinfo=timezone.utc), 48.2),
            self._slot(datetime(2026, 3, 3, 12, tzinfo=timezone.utc), 52.7),
            self._slot(datetime(2026, 3, 3, 15, tzinfo=timezone.utc), 55.0),
        ]
        tool = WeatherTool("owm-key", session=self._session(slots), now=lambda: NOW)

        result = tool.run("Seattle", date="2026-03-03T13:00:00Z")

        assert result["location"] == "Seattle, US"
        assert result["temperature"] == 53
        assert result["feels_like"] == 50
        assert result["wind_speed"] == 8
        assert result["precipitation_chance"] == 46
        assert result["date"].startswith("2026-03-03T12:00")

    def test_date_only_targets_midday(self):
        slots = [
            self._slot(datetime(2026, 3, 3, 0, tzinfo=timezone.utc), 40),
            self._slot(datetime(2026, 3, 3, 12, tzinfo=timezone.utc), 50),
        ]
        tool = WeatherTool("owm-key", session=self._session(slots), now=lambda: NOW)
        assert tool.run("Seattle", date="2026-03-03")["temperature"] == 50

    def test_location_not_found(self):
        session = MagicMock()
        session.get.return_value = _response([])
        with pytest.raises(ToolError, match="Location not found"):
            WeatherTool("owm-key", session=session).run("Atlantis")

    def test_missing_key(self):
        with pytest.raises(ToolError, match="not configured"):
            WeatherTool(None, session=MagicMock()).run("Seattle")

    def test_invalid_date(self):
        with pytest.raises(ToolError, match="Invalid date"):
            WeatherTool("owm-key", session=MagicMock()).run("Seattle", date="next tuesday")
