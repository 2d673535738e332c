"""Daybook configuration and Keychain helpers.

Shared by the service wiring, the LLM clients, the tools and the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".daybook" / "config.json"
KEYCHAIN_SERVICE = "daybook"

# env var → Keychain account
API_KEYS = {
    "GEMINI_API_KEY": "gemini",
    "ANTHROPIC_API_KEY": "claude",
    "GOOGLE_MAPS_API_KEY": "google-maps",
    "WEATHER_API_KEY": "openweather",
}


@dataclass
class DaybookConfig:
    """Runtime settings. Every field can be set in config.json."""

    db_path: str = str(Path.home() / ".daybook" / "daybook.db")
    provider: str = "gemini"
    model: Optional[str] = None
    embedding_model: str = "gemini-embedding-001"
    embedding_dim: int = 1536
    feed_context_limit: int = 20
    answer_semantic_limit: int = 5
    answer_recent_limit: int = 3
    answer_window_hours: int = 24
    http_timeout: float = 10.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DaybookConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def config_path() -> Path:
    override = os.environ.get("DAYBOOK_CONFIG")
    return Path(override) if override else DEFAULT_CONFIG_PATH


def load_config(path: Path | None = None) -> DaybookConfig:
    """Load config from disk, falling back to defaults."""
    path = path or config_path()
    if path.exists():
        try:
            return DaybookConfig.from_dict(json.loads(path.read_text()))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Could not read config %s (%s), using defaults", path, exc)
    return DaybookConfig()


def save_config(config: DaybookConfig, path: Path | None = None):
    """Save config to disk."""
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2))


def get_api_key(env_var: str) -> Optional[str]:
    """Load an API key from the environment or macOS Keychain.

    Checks env var first, then Keychain (set via `daybook set-key`).
    """
    key = os.environ.get(env_var)
    if key:
        return key

    account = API_KEYS.get(env_var)
    if not account:
        return None

    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-a", account, "-s", KEYCHAIN_SERVICE, "-w"],
            capture_output=True, text=True,
        )
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
    except FileNotFoundError:
        logger.debug("No Keychain on this platform; %s must come from the environment", env_var)

    return None


def store_api_key(account: str, key: str) -> bool:
    """Store an API key in macOS Keychain, replacing any previous value."""
    try:
        subprocess.run(
            ["security", "delete-generic-password", "-a", account, "-s", KEYCHAIN_SERVICE],
            capture_output=True,
        )
        result = subprocess.run(
            ["security", "add-generic-password", "-a", account, "-s", KEYCHAIN_SERVICE, "-w", key],
            capture_output=True, text=True,
        )
    except FileNotFoundError:
        logger.error("macOS `security` tool not found; export the key as an environment variable instead")
        return False
    if result.returncode != 0:
        logger.error("Keychain write failed: %s", result.stderr.strip())
    return result.returncode == 0
