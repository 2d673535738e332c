"""Load prompt definitions from Markdown files with YAML frontmatter."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent / "prompts"


@dataclass
class PromptDefinition:
    """A parsed prompt from a markdown file."""

    name: str
    description: str
    body: str
    variables: list = field(default_factory=list)
    model_params: Dict[str, Any] = field(default_factory=dict)
    file_path: Optional[str] = None

    def render(self, **values: Any) -> str:
        """Fill `$name` placeholders. Every declared variable must be supplied."""
        missing = [v for v in self.variables if v not in values]
        if missing:
            raise KeyError(f"Prompt {self.name} is missing variables: {', '.join(missing)}")
        return Template(self.body).safe_substitute({k: str(v) for k, v in values.items()})

    @property
    def temperature(self) -> Optional[float]:
        value = self.model_params.get("temperature")
        return float(value) if value is not None else None


def load_prompt_file(path: Path) -> Optional[PromptDefinition]:
    """Parse a single prompt markdown file.

    Expected format:
        ---
        prompt_name: ...
        description: ...
        variables: [...]
        ---
        Prompt body in markdown, with $placeholders
    """
    text = path.read_text(encoding="utf-8")

    if not text.startswith("---"):
        logger.warning("Prompt file %s missing YAML frontmatter, skipping", path)
        return None

    parts = text.split("---", 2)
    if len(parts) < 3:
        logger.warning("Prompt file %s has malformed frontmatter, skipping", path)
        return None

    try:
        meta = yaml.safe_load(parts[1].strip())
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse YAML in %s: %s", path, exc)
        return None

    if not isinstance(meta, dict):
        logger.warning("Frontmatter in %s is not a dict, skipping", path)
        return None

    return PromptDefinition(
        name=meta.get("prompt_name", path.stem),
        description=meta.get("description", ""),
        body=parts[2].strip(),
        variables=meta.get("variables", []),
        model_params=meta.get("model_params", {}),
        file_path=str(path),
    )


def load_prompt(name: str, prompts_dir: Optional[Path] = None) -> PromptDefinition:
    """Load the named prompt bundled with the package (or from `prompts_dir`)."""
    path = (prompts_dir or PROMPTS_DIR) / f"{name}.md"
    if not path.is_file():
        raise FileNotFoundError(f"Prompt not found: {path}")
    defn = load_prompt_file(path)
    if defn is None:
        raise ValueError(f"Prompt file {path} could not be parsed")
    logger.debug("Loaded prompt: %s", defn.name)
    return defn
