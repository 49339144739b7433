"""The generative client contract shared by every provider."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

Message = Dict[str, Any]


class GenerativeClient(Protocol):
    """Async, fallible, single-shot access to text, image and video models.

    Implementations never retry; every failure surfaces as a
    :class:`~autocine.errors.GenerativeError` and the pipeline stages decide
    how to recover.
    """

    async def text_complete(
        self,
        messages: List[Message],
        json_mode: bool = False,
        *,
        model: Optional[str] = None,
    ) -> str:
        ...

    async def image_generate(
        self,
        prompt: str,
        reference_image_urls: Sequence[str] = (),
        *,
        model: Optional[str] = None,
    ) -> str:
        ...

    async def video_generate(
        self,
        prompt: str,
        start_image_url: Optional[str],
        *,
        model: Optional[str] = None,
    ) -> str:
        ...


def user_content(text: str, image_urls: Sequence[str] = ()) -> List[Dict[str, Any]]:
    """Build a multimodal user content list: the text part, then images in order."""
    content: List[Dict[str, Any]] = [{"type": "text", "text": text}]
    for url in image_urls:
        content.append({"type": "image_url", "image_url": {"url": url}})
    return content


def has_image_parts(messages: Sequence[Message]) -> bool:
    """Return True when any message carries an inline image part."""
    for message in messages:
        content = message.get("content")
        if isinstance(content, list):
            if any(isinstance(item, dict) and item.get("type") == "image_url" for item in content):
                return True
    return False
