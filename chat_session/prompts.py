"""
Scenario content shown by the front-end: assistant name, welcome text and
sample phrases. Display-only; the system prompt lives with the chat backend.

Scenarios are stored as YAML (preferred) or JSON under scenarios/.
PyYAML's safe_load parses both.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


DEFAULT_WELCOME_TEXT = "Welcome. How may I assist you today?"


@dataclass(frozen=True)
class Scenario:
    name: str
    assistant_name: str = "Assistant"
    welcome_text: str = DEFAULT_WELCOME_TEXT
    sample_phrases: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "Scenario":
        phrases = data.get("sample_phrases") or []
        if not isinstance(phrases, list) or not all(isinstance(p, str) for p in phrases):
            raise ValueError("sample_phrases must be a list of strings")
        return cls(
            name=str(data.get("name", "default")),
            assistant_name=str(data.get("assistant_name", "Assistant")),
            welcome_text=str(data.get("welcome_text", DEFAULT_WELCOME_TEXT)).strip(),
            sample_phrases=[p.strip() for p in phrases if p.strip()],
        )


def _get_scenarios_dir() -> Path:
    return Path(__file__).parent / "scenarios"


def _load_file(path: Path) -> Dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Scenario file {path} must contain a mapping at top-level")
        return data


def load_scenario(scenario_name: str) -> Scenario:
    """
    Load a scenario.

    Resolution order:
    1) <name>.yaml / <name>.yml / <name>.json
    2) default.yaml / default.yml / default.json
    3) hardcoded default
    """
    scenarios_dir = _get_scenarios_dir()

    for stem in (scenario_name, "default"):
        for suffix in (".yaml", ".yml", ".json"):
            candidate = scenarios_dir / f"{stem}{suffix}"
            if candidate.exists():
                return Scenario.from_mapping(_load_file(candidate))

    return Scenario(name="default")


def get_scenario(name: Optional[str] = None) -> Scenario:
    """Scenario by explicit name, else CHAT_SCENARIO, else "default"."""
    return load_scenario(name or os.getenv("CHAT_SCENARIO", "default"))
