"""Render calendar events, emails and profiles to the plain text that gets embedded.

Input shapes follow the Google Calendar / Gmail JSON the caller already has
(`summary`, `start.dateTime`, `attendees[].email`, …); fetching them is not
our concern.
"""

from __future__ import annotations

import html
import json
import re
from typing import Any

MAX_EMAIL_BODY_CHARS = 5000

TAG_RE = re.compile(r"<[^>]*>")
BLOCK_TAG_RE = re.compile(r"<\s*(br|/p|/div|/li|/tr|/h\d)\b[^>]*>", re.IGNORECASE)
SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
HTML_HINT_RE = re.compile(r"<\s*(html|body|div|p|br|span|table|a)\b", re.IGNORECASE)
ON_WROTE_RE = re.compile(r"^On\s+.+?(?:\d{4}|\d{1,2}:\d{2}).*?wrote:?\s*$", re.IGNORECASE)

PROFILE_FIELDS = [
    ("name", "Name"),
    ("birthday", "Birthday"),
    ("homeAddress", "Home Address"),
    ("workAddress", "Work Address"),
    ("phone", "Phone"),
]
PREFERENCE_FIELDS = [
    ("dietaryRestrictions", "Dietary restrictions"),
    ("commuteMethod", "Commute method"),
    ("timezone", "Timezone"),
]


def _when(value: Any) -> str | None:
    """Google Calendar start/end: {"dateTime": ...} or {"date": ...} or a bare string."""
    if isinstance(value, dict):
        return value.get("dateTime") or value.get("date")
    if isinstance(value, str) and value:
        return value
    return None


def _value(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def render_calendar_event(event: dict[str, Any]) -> str:
    parts = []
    if event.get("summary"):
        parts.append(f"Event: {event['summary']}")

    start, end = _when(event.get("start")), _when(event.get("end"))
    if start:
        parts.append(f"Start: {start}")
    if end:
        parts.append(f"End: {end}")

    if event.get("description"):
        parts.append(f"Description: {event['description']}")
    if event.get("location"):
        parts.append(f"Location: {event['location']}")

    attendees = event.get("attendees") or []
    if attendees:
        names = [
            (a.get("email") or a.get("displayName") or "Unknown") if isinstance(a, dict) else str(a)
            for a in attendees
        ]
        parts.append(f"Attendees: {', '.join(names)}")

    return "\n".join(parts)


def html_to_text(body: str) -> str:
    """Strip tags and decode entities; block-level tags become line breaks."""
    body = SCRIPT_STYLE_RE.sub(" ", body)
    body = BLOCK_TAG_RE.sub("\n", body)
    body = TAG_RE.sub(" ", body)
    body = html.unescape(body)
    lines = [re.sub(r"[ \t\xa0]+", " ", line).strip() for line in body.split("\n")]
    return "\n".join(line for line in lines if line)


def strip_quoted_reply(body: str) -> str:
    """Drop '>' quoted lines and everything from an 'On … wrote:' header down."""
    kept = []
    for line in body.replace("\r\n", "\n").split("\n"):
        stripped = line.strip()
        if ON_WROTE_RE.match(stripped):
            break
        if stripped.startswith(">"):
            continue
        kept.append(line)
    return "\n".join(kept).strip()


def clean_email_body(body: str, is_html: bool | None = None) -> str:
    if not body:
        return ""
    if is_html is None:
        is_html = bool(HTML_HINT_RE.search(body))
    if is_html:
        body = html_to_text(body)
    body = strip_quoted_reply(body)
    if len(body) > MAX_EMAIL_BODY_CHARS:
        body = body[:MAX_EMAIL_BODY_CHARS] + "..."
    return body


def render_email(email: dict[str, Any]) -> str:
    """Headers then body. Accepts `body` (plain or HTML) or `html`."""
    if email.get("body"):
        body = clean_email_body(email["body"])
    else:
        body = clean_email_body(email.get("html") or "", is_html=True)

    parts = ["Email:"]
    for key, label in (("from", "From"), ("to", "To"), ("subject", "Subject"), ("date", "Date")):
        if email.get(key):
            parts.append(f"{label}: {email[key]}")
    if body:
        parts.append(f"\nBody:\n{body}")
    return "\n".join(parts)


def render_profile(profile: dict[str, Any]) -> str:
    """Known fields first, then any custom keys, generically."""
    parts = ["User Profile Information:"]
    known = {key for key, _ in PROFILE_FIELDS} | {"preferences"}

    for key, label in PROFILE_FIELDS:
        if profile.get(key):
            parts.append(f"{label}: {profile[key]}")

    prefs = profile.get("preferences")
    if isinstance(prefs, dict) and prefs:
        parts.append("Preferences:")
        for key, label in PREFERENCE_FIELDS:
            value = prefs.get(key)
            if not value:
                continue
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            parts.append(f"  - {label}: {value}")
        for key, value in prefs.items():
            if key not in {k for k, _ in PREFERENCE_FIELDS}:
                parts.append(f"  - {key}: {_value(value)}")

    for key, value in profile.items():
        if key not in known:
            parts.append(f"{key}: {_value(value)}")

    return "\n".join(parts)
