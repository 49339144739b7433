"""Client for Poe's OpenAI-compatible chat completions endpoint.

Text, image and video models are all reached through ``chat.completions``;
image and video replies arrive as free-form text that carries the result URL.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence

from openai import AsyncOpenAI, OpenAIError

from ..errors import GenerativeError, MissingCredentialsError
from ..utils.extract import extract_image_url, extract_video_url
from .base import Message, user_content

# Models that ignore system messages and JSON mode; their instructions are
# folded into the user turn instead.
INSTRUCTION_FLATTENING_MODELS = frozenset({"gpt-5", "gpt-5-mini", "o3", "o4-mini"})
REASONING_MODELS = frozenset({"gpt-5", "gpt-5-mini", "o3", "o4-mini"})


class PoeClient:
    """Implements :class:`~autocine.services.base.GenerativeClient` over Poe."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: str = "https://api.poe.com/v1",
        text_model: str = "gpt-5",
        image_model: str = "nano-banana-pro",
        video_model: str = "sora-2",
        timeout: int = 300,
        image_options: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._text_model = text_model
        self._image_model = image_model
        self._video_model = video_model
        self._timeout = timeout
        self._image_options = image_options or {
            "aspect_ratio": "16:9",
            "image_only": True,
            "image_size": "1K",
        }
        self._client: Optional[AsyncOpenAI] = None

    async def text_complete(
        self,
        messages: List[Message],
        json_mode: bool = False,
        *,
        model: Optional[str] = None,
    ) -> str:
        model = model or self._text_model
        if model in INSTRUCTION_FLATTENING_MODELS:
            messages = self._flatten_instructions(messages)
            json_mode = False

        extra_body: Dict[str, Any] = {}
        if model in REASONING_MODELS:
            extra_body["reasoning_effort"] = "medium"
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        response = await self._create(model=model, messages=messages, extra_body=extra_body or None, **kwargs)
        text = self._extract_text(response)
        if not text:
            raise GenerativeError(f"{model} reply missing content")
        return text

    async def image_generate(
        self,
        prompt: str,
        reference_image_urls: Sequence[str] = (),
        *,
        model: Optional[str] = None,
    ) -> str:
        model = model or self._image_model
        messages = [{"role": "user", "content": user_content(prompt, reference_image_urls)}]
        response = await self._create(model=model, messages=messages, extra_body=dict(self._image_options))
        return extract_image_url(self._extract_text(response))

    async def video_generate(
        self,
        prompt: str,
        start_image_url: Optional[str],
        *,
        model: Optional[str] = None,
    ) -> str:
        model = model or self._video_model
        content: Any = user_content(prompt, [start_image_url]) if start_image_url else prompt
        response = await self._create(model=model, messages=[{"role": "user", "content": content}])
        return extract_video_url(self._extract_text(response))

    async def _create(self, *, model: str, messages: List[Message], **kwargs: Any) -> Any:
        client = self._resolve_client()
        try:
            return await client.chat.completions.create(model=model, messages=messages, **kwargs)
        except OpenAIError as err:
            raise GenerativeError(f"{model} call failed: {err}") from err

    def _resolve_client(self) -> AsyncOpenAI:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise MissingCredentialsError("Poe API key is missing; cannot call the generative endpoint.")
        self._client = AsyncOpenAI(api_key=self._api_key, base_url=self._api_url, timeout=self._timeout)
        return self._client

    @staticmethod
    def _flatten_instructions(messages: List[Message]) -> List[Message]:
        """Merge the system message into the first user turn, keeping its images."""
        system = next((m for m in messages if m.get("role") == "system"), None)
        user = next((m for m in messages if m.get("role") == "user"), None)
        if system is None or user is None:
            return messages

        content = user.get("content")
        if isinstance(content, list):
            text = next((item.get("text", "") for item in content if item.get("type") == "text"), "")
            images = [item for item in content if item.get("type") == "image_url"]
        else:
            text = str(content or "")
            images = []

        merged = f"[Instruction]\n{system.get('content', '')}\n\n[User Input]\n{text}"
        new_content: Any = [{"type": "text", "text": merged}, *images] if images else merged
        return [{"role": "user", "content": new_content}]

    @staticmethod
    def _extract_text(response: Any) -> Optional[str]:
        """Extract assistant text content from OpenAI-compatible responses."""
        choices = getattr(response, "choices", None)
        if not choices and isinstance(response, dict):
            choices = response.get("choices")
        if isinstance(choices, list) and choices:
            choice = choices[0]
            message = getattr(choice, "message", None)
            if message is None and isinstance(choice, dict):
                message = choice.get("message")
            if message is not None:
                content = getattr(message, "content", None)
                if content is None and isinstance(message, dict):
                    content = message.get("content")
                if isinstance(content, str):
                    return content
                if isinstance(content, list):
                    return json.dumps(content, ensure_ascii=False)
        return None
