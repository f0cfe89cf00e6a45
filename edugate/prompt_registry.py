"""PromptRegistry — loads prompt templates from YAML, caches them, renders with Jinja2.

Templates are defined in ``edugate/prompts.yaml``. Every template name used by
PromptBuilder must be present; ``validate()`` reports gaps and syntax errors.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

logger = logging.getLogger("edugate.prompt_registry")

_DEFAULT_PROMPTS_PATH = Path(__file__).parent / "prompts.yaml"

REQUIRED_PROMPTS = {
    "system",
    "conversation_context",
    "chat",
    "analyze_essay",
    "search_and_analyze",
    "browse_and_analyze",
}


class PromptNotFoundError(KeyError):
    """Raised when a prompt name is not found in the registry."""


class PromptRenderError(ValueError):
    """Raised when a prompt template fails to render."""


class PromptEntry:
    """Single prompt entry: template plus the truncation bound for its bulky field."""

    __slots__ = ("name", "template", "max_chars")

    def __init__(self, name: str, template: str, max_chars: int | None = None):
        self.name = name
        self.template = template
        self.max_chars = max_chars

    def __repr__(self) -> str:
        return f"PromptEntry(name={self.name!r}, max_chars={self.max_chars})"


class PromptRegistry:
    """Usage:
        registry = PromptRegistry()
        prompt = registry.get("system", rules="1. ...", grade_summary="...")
    """

    def __init__(self, prompts_path: Path | str | None = None):
        self._path = Path(prompts_path) if prompts_path else _DEFAULT_PROMPTS_PATH
        self._entries: dict[str, PromptEntry] = {}
        self._jinja_env = Environment(
            loader=BaseLoader(),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
        )
        self._loaded = False

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._load()

    def _load(self) -> None:
        if not self._path.exists():
            logger.warning(f"Prompts file not found: {self._path}, using empty registry")
            self._loaded = True
            return

        with open(self._path) as f:
            raw = yaml.safe_load(f) or {}

        for name, data in raw.get("prompts", {}).items():
            if isinstance(data, dict):
                self._entries[name] = PromptEntry(
                    name=name,
                    template=data.get("system", ""),
                    max_chars=data.get("max_chars"),
                )
            elif isinstance(data, str):
                self._entries[name] = PromptEntry(name=name, template=data)

        self._loaded = True
        logger.debug(f"Loaded {len(self._entries)} prompts from {self._path}")

    def get(self, prompt_name: str, **variables: Any) -> str:
        """Render a prompt by name.

        Raises:
            PromptNotFoundError: If the prompt name doesn't exist.
            PromptRenderError: If a variable is missing or the template is invalid.
        """
        entry = self.get_entry(prompt_name)
        return self._render(entry.template, variables).strip()

    def get_entry(self, name: str) -> PromptEntry:
        self._ensure_loaded()
        entry = self._entries.get(name)
        if entry is None:
            raise PromptNotFoundError(f"Prompt '{name}' not found in registry. Available: {self.list_prompts()}")
        return entry

    def list_prompts(self) -> list[str]:
        self._ensure_loaded()
        return sorted(self._entries.keys())

    def validate(self) -> list[str]:
        """Return a list of problems; empty means the registry is usable."""
        self._ensure_loaded()
        errors: list[str] = []

        missing = REQUIRED_PROMPTS - set(self._entries)
        if missing:
            errors.append(f"Missing required prompts: {sorted(missing)}")

        for name, entry in self._entries.items():
            if not entry.template.strip():
                errors.append(f"Prompt '{name}' has empty template")
            try:
                self._jinja_env.parse(entry.template)
            except TemplateSyntaxError as e:
                errors.append(f"Prompt '{name}' has invalid Jinja2 syntax: {e}")

        return errors

    def register(self, name: str, template: str, max_chars: int | None = None) -> None:
        """Register a prompt programmatically (tests, admin overrides)."""
        self._ensure_loaded()
        self._entries[name] = PromptEntry(name=name, template=template, max_chars=max_chars)

    def _render(self, template_str: str, variables: dict[str, Any]) -> str:
        try:
            template = self._jinja_env.from_string(template_str)
            return template.render(**variables)
        except UndefinedError as e:
            raise PromptRenderError(f"Missing template variable: {e}") from e
        except TemplateSyntaxError as e:
            raise PromptRenderError(f"Invalid template syntax: {e}") from e
