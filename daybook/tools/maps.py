"""Google Maps backed tools: driving directions and nearby place search.

Both tools share one `GoogleMapsClient`, which owns the API key and an
injectable `requests.Session`. Routes and Places (New) are POST + JSON with a
field mask header; Geocoding is a plain GET.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from daybook.db import parse_datetime
from daybook.errors import ToolError
from daybook.tools.base import Tool, ToolParameter, ToolSpec

logger = logging.getLogger(__name__)

ROUTES_URL = "https://routes.googleapis.com/directions/v2:computeRoutes"
PLACES_URL = "https://places.googleapis.com/v1/places:searchText"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

ROUTES_FIELD_MASK = ",".join([
    "routes.duration",
    "routes.staticDuration",
    "routes.distanceMeters",
    "routes.localizedValues",
    "routes.legs.steps.navigationInstruction",
    "routes.legs.steps.localizedValues",
])
PLACES_FIELD_MASK = ",".join([
    "places.displayName",
    "places.formattedAddress",
    "places.rating",
    "places.currentOpeningHours",
    "places.types",
])

METERS_PER_MILE = 1609.34
MAX_STEPS = 10
MAX_PLACES = 5
DEFAULT_RADIUS_M = 5000
MAX_RADIUS_M = 50000


class GoogleMapsClient:
    """Thin wrapper over the Routes, Places and Geocoding endpoints."""

    def __init__(
        self,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _require_key(self) -> str:
        if not self.api_key:
            raise ToolError(
                "Google Maps API key not configured. "
                "Run: daybook set-key google-maps (or export GOOGLE_MAPS_API_KEY)"
            )
        return self.api_key

    def post(self, url: str, body: Dict[str, Any], field_mask: str) -> Dict[str, Any]:
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self._require_key(),
            "X-Goog-FieldMask": field_mask,
        }
        try:
            resp = self.session.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise ToolError(f"Google Maps request failed: {exc}") from exc
        if resp.status_code != 200:
            logger.warning("Google Maps %s returned %s: %s", url, resp.status_code, resp.text[:200])
            raise ToolError(f"Google Maps API error: HTTP {resp.status_code}")
        return resp.json()

    def geocode(self, address: str) -> tuple[float, float]:
        """Resolve an address to (lat, lng). Raises ToolError when nothing matches."""
        try:
            resp = self.session.get(
                GEOCODE_URL,
                params={"address": address, "key": self._require_key()},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise ToolError(f"Geocoding request failed: {exc}") from exc
        if resp.status_code != 200:
            raise ToolError(f"Geocoding API error: HTTP {resp.status_code}")

        data = resp.json()
        results = data.get("results") or []
        if data.get("status") == "ZERO_RESULTS" or not results:
            raise ToolError(f"Location not found: {address}")
        if data.get("status") not in (None, "OK"):
            raise ToolError(f"Geocoding API error: {data.get('status')}")

        loc = results[0]["geometry"]["location"]
        return float(loc["lat"]), float(loc["lng"])


class DirectionsTool(Tool):
    spec = ToolSpec(
        name="get_directions",
        description=(
            "Get driving directions, distance, duration and current traffic between two "
            "locations. Use this when the user asks about commute time, how to get "
            "somewhere, or traffic conditions."
        ),
        parameters=[
            ToolParameter("origin", "string", "Starting address or place name"),
            ToolParameter("destination", "string", "Destination address or place name"),
            ToolParameter(
                "departure_time", "string",
                "ISO 8601 departure date-time (optional, defaults to now)",
                required=False,
            ),
        ],
    )

    def __init__(self, client: GoogleMapsClient):
        self.client = client

    def run(self, origin: str, destination: str, departure_time: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "origin": {"address": origin},
            "destination": {"address": destination},
            "travelMode": "DRIVE",
            "routingPreference": "TRAFFIC_AWARE",
            "computeAlternativeRoutes": False,
            "languageCode": "en-US",
            "units": "IMPERIAL",
        }
        if departure_time:
            try:
                body["departureTime"] = parse_datetime(departure_time).isoformat().replace("+00:00", "Z")
            except ValueError as exc:
                raise ToolError(f"Invalid departure_time: {departure_time}") from exc

        data = self.client.post(ROUTES_URL, body, ROUTES_FIELD_MASK)
        routes = data.get("routes") or []
        if not routes:
            raise ToolError(f"No route found from {origin} to {destination}")

        route = routes[0]
        localized = route.get("localizedValues") or {}
        legs = route.get("legs") or [{}]

        steps = []
        for step in (legs[0].get("steps") or [])[:MAX_STEPS]:
            step_values = step.get("localizedValues") or {}
            steps.append({
                "instruction": (step.get("navigationInstruction") or {}).get("instructions", "Continue"),
                "distance": (step_values.get("distance") or {}).get("text", ""),
                "duration": (step_values.get("staticDuration") or {}).get("text", ""),
            })

        static_text = (localized.get("staticDuration") or {}).get("text")
        traffic_text = (localized.get("duration") or {}).get("text")
        return {
            "origin": origin,
            "destination": destination,
            "distance": (localized.get("distance") or {}).get("text")
            or f"{round(route.get('distanceMeters', 0) / METERS_PER_MILE)} mi",
            "duration": static_text or _minutes(route.get("staticDuration") or route.get("duration")),
            "duration_in_traffic": traffic_text or _minutes(route.get("duration")),
            "steps": steps,
        }


class PlacesTool(Tool):
    spec = ToolSpec(
        name="search_places",
        description=(
            "Search for places such as restaurants, coffee shops or gas stations near a "
            "location. Use this when the user asks about finding places near a location or event."
        ),
        parameters=[
            ToolParameter("location", "string", "Address or place name to search near"),
            ToolParameter("query", "string", "What to search for, e.g. 'italian restaurants'"),
            ToolParameter(
                "radius", "number",
                f"Search radius in meters (default {DEFAULT_RADIUS_M}, max {MAX_RADIUS_M})",
                required=False,
            ),
        ],
    )

    def __init__(self, client: GoogleMapsClient):
        self.client = client

    def run(self, location: str, query: str, radius: Optional[float] = None) -> Dict[str, Any]:
        radius = DEFAULT_RADIUS_M if radius is None else radius
        if not 0 < radius <= MAX_RADIUS_M:
            raise ToolError(f"radius must be within (0, {MAX_RADIUS_M}] meters, got {radius}")

        lat, lng = self.client.geocode(location)
        body = {
            "textQuery": query,
            "locationBias": {
                "circle": {
                    "center": {"latitude": lat, "longitude": lng},
                    "radius": float(radius),
                },
            },
            "maxResultCount": MAX_PLACES,
            "languageCode": "en",
        }
        data = self.client.post(PLACES_URL, body, PLACES_FIELD_MASK)

        results = []
        for place in (data.get("places") or [])[:MAX_PLACES]:
            results.append({
                "name": (place.get("displayName") or {}).get("text", "Unknown"),
                "address": place.get("formattedAddress", "No address"),
                "rating": place.get("rating"),
                "open_now": (place.get("currentOpeningHours") or {}).get("openNow"),
                "categories": place.get("types", []),
            })
        return {"location": location, "query": query, "results": results}


def _minutes(duration: Optional[str]) -> str:
    """Routes API durations look like '1234s'."""
    if not duration:
        return ""
    seconds = float(duration.rstrip("s"))
    return f"{round(seconds / 60)} min"
