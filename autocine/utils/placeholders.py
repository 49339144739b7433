"""Deterministic stand-in image URLs used when a generation fails."""

from __future__ import annotations

from urllib.parse import quote

PLACEHOLDER_BASE = "https://placehold.co"


def placeholder_url(label: str, size: str = "1024x576") -> str:
    """Return a stable placeholder image URL that renders ``label``."""
    text = quote(label.strip() or "?", safe="")
    return f"{PLACEHOLDER_BASE}/{size}/333333/ffffff.png?text={text}"


def asset_placeholder_url(name: str) -> str:
    return placeholder_url(name, size="768x768")


def scene_placeholder_url(scene_id: int) -> str:
    return placeholder_url(f"Scene {scene_id}")
