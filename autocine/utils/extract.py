"""Adapters that pull structured payloads out of free-form model replies."""

from __future__ import annotations

import re
from typing import Optional

from ..errors import ExtractionFailure

_MARKDOWN_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*(\S+?)\s*\)")
_MARKDOWN_LINK = re.compile(r"\]\(\s*(https?://\S+?)\s*\)")
_VIDEO_URL = re.compile(
    r"https?://[^\s)\"'<>]+?\.(?:mp4|mov|webm)(?:\?[^\s)\"'<>]*)?(?=[\s)\"'<>]|$)",
    re.IGNORECASE,
)
_BARE_URL = re.compile(r"https?://[^\s)\"'<>]+")
_DATA_URL = re.compile(r"data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/=]+")
_CODE_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)


def clean_json_text(text: str) -> str:
    """Strip markdown fences and surrounding prose around a JSON document."""
    s = (text or "").strip()
    fenced = _CODE_FENCE.search(s)
    if fenced:
        s = fenced.group(1).strip()
    # prefer object root, fallback to array root
    o_start = s.find("{")
    o_end = s.rfind("}")
    if o_start != -1 and o_end > o_start:
        return s[o_start : o_end + 1]
    a_start = s.find("[")
    a_end = s.rfind("]")
    if a_start != -1 and a_end > a_start:
        return s[a_start : a_end + 1]
    return s


def extract_image_url(content: Optional[str]) -> str:
    """Return the first image URL in a completion: markdown image, data URL, then bare URL."""
    text = content or ""
    match = _MARKDOWN_IMAGE.search(text)
    if match:
        return match.group(1)
    match = _DATA_URL.search(text)
    if match:
        return match.group(0)
    match = _BARE_URL.search(text)
    if match:
        return match.group(0)
    raise ExtractionFailure(f"no image URL in reply: {text[:200]!r}")


def extract_video_url(content: Optional[str]) -> str:
    """Return the video URL in a completion, preferring links to video files."""
    text = content or ""
    match = _VIDEO_URL.search(text)
    if match:
        return match.group(0)
    match = _MARKDOWN_LINK.search(text)
    if match:
        return match.group(1)
    match = _BARE_URL.search(text)
    if match:
        return match.group(0)
    raise ExtractionFailure(f"no video URL in reply: {text[:200]!r}")
