"""Prompt templates kept in ``prompts/prompts.json``.

Entries are addressed by dotted keys (``report.prompt``) and rendered with
``string.Template`` placeholders. The file is re-read when its mtime changes.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    def __init__(self, path: Path = PROMPTS_PATH):
        self.path = path
        self._data: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def data(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._data is None or self._mtime_ns != mtime_ns:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError(f"Prompt catalog {self.path} must be a JSON object")
            self._data, self._mtime_ns = payload, mtime_ns
        return self._data

    def entry(self, key: str) -> str:
        node: Any = self.data()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string: {key}")
        return node

    def render(self, key: str, values: dict[str, Any]) -> str:
        template = Template(self.entry(key))
        missing = [name for name in template.get_identifiers() if name not in values]
        if missing:
            raise KeyError(f"Missing template value '{missing[0]}' for prompt '{key}'")
        return template.substitute(values)


_catalog = PromptCatalog()


def prompt_entry(key: str) -> str:
    """Raw catalog string for a dotted key such as ``languages.vi.name``."""
    return _catalog.entry(key)


def render_prompt(key: str, **values: Any) -> str:
    return _catalog.render(key, values)


def language_values(language: str) -> dict[str, str]:
    """Name and extra instruction for a report language; unknown codes use English."""
    code = language if isinstance(_catalog.data().get("languages", {}).get(language), dict) else "en"
    return {
        "language_name": prompt_entry(f"languages.{code}.name"),
        "language_rule": prompt_entry(f"languages.{code}.rule"),
    }
