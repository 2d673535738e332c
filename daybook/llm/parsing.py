"""Normalize raw model output before it reaches a parser."""

from __future__ import annotations


def strip_code_fences(raw: str) -> str:
    """Remove markdown code-fence lines (```json … ```) wrapping model output."""
    cleaned = raw.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [line for line in lines if not line.strip().startswith("```")]
        cleaned = "\n".join(lines).strip()
    return cleaned
