"""Utilities for loading reusable prompt templates."""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Mapping

PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"
_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")


@lru_cache(maxsize=None)
def _read_template(name: str) -> str:
    path = PROMPTS_DIR / f"{name}.txt"
    return path.read_text(encoding="utf-8")


def load_prompt(name: str, variables: Mapping[str, object] | None = None) -> str:
    """Return the rendered prompt ``name`` with ``{{ key }}`` placeholders filled.

    Unknown placeholders are left untouched so templates can be rendered in
    several passes; ``None`` values render as empty strings.
    """
    template = _read_template(name)
    if not variables:
        return template.strip()
    if not isinstance(variables, Mapping):
        raise TypeError("variables must be a mapping of placeholder -> value")

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in variables:
            return match.group(0)
        value = variables[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER_PATTERN.sub(_replace, template).strip()


__all__ = ["load_prompt", "PROMPTS_DIR"]
