"""Deterministic offline stand-in for the generative endpoints."""

from __future__ import annotations

import asyncio
import json
import re
from typing import Any, Dict, List, Optional, Sequence

from ..utils.files import sha256_hex
from .base import Message, has_image_parts

_CATALOG_LINE = re.compile(r"^- \[(character|environment)\] (.+?) \| id: (\S+)", re.MULTILINE)
_TOPIC_LINE = re.compile(r"(?:主题|Topic)[:：]\s*(.+)")
_ASSET_NAME = re.compile(r"文件名[:：]\s*([^）)\n]+)")
_KIND_HINTS = (
    ("scale_ref", ("scale", "ruler", "比例", "尺寸")),
    ("environment", ("scene", "env", "bg", "background", "场景", "背景", "环境")),
)


class MockGenerativeClient:
    """Returns stable, content-addressed results so runs are reproducible.

    Image and video URLs are derived from a hash of the prompt and references,
    so identical inputs always yield identical outputs.
    """

    def __init__(self, latency: float = 0.0, base_url: str = "https://mock.autocine.local") -> None:
        self._latency = latency
        self._base_url = base_url.rstrip("/")

    async def text_complete(
        self,
        messages: List[Message],
        json_mode: bool = False,
        *,
        model: Optional[str] = None,
    ) -> str:
        await self._pause()
        text = self._joined_text(messages)
        if has_image_parts(messages):
            return json.dumps(self._mock_classification(text), ensure_ascii=False)
        return json.dumps(self._mock_script(text), ensure_ascii=False)

    async def image_generate(
        self,
        prompt: str,
        reference_image_urls: Sequence[str] = (),
        *,
        model: Optional[str] = None,
    ) -> str:
        await self._pause()
        digest = self._digest(prompt, *reference_image_urls)
        return f"{self._base_url}/image/{digest}.png"

    async def video_generate(
        self,
        prompt: str,
        start_image_url: Optional[str],
        *,
        model: Optional[str] = None,
    ) -> str:
        await self._pause()
        digest = self._digest(prompt, start_image_url or "", model or "")
        return f"{self._base_url}/video/{digest}.mp4"

    async def _pause(self) -> None:
        if self._latency > 0:
            await asyncio.sleep(self._latency)

    @staticmethod
    def _digest(*parts: str) -> str:
        return sha256_hex("\x1f".join(parts).encode("utf-8"))[:16]

    @staticmethod
    def _joined_text(messages: List[Message]) -> str:
        chunks: List[str] = []
        for message in messages:
            content = message.get("content")
            if isinstance(content, str):
                chunks.append(content)
            elif isinstance(content, list):
                chunks.extend(item.get("text", "") for item in content if isinstance(item, dict))
        return "\n".join(chunks)

    @staticmethod
    def _mock_classification(text: str) -> Dict[str, Any]:
        name_match = _ASSET_NAME.search(text)
        lowered = name_match.group(1).strip().lower() if name_match else ""
        kind = "character"
        for candidate, hints in _KIND_HINTS:
            if any(hint in lowered for hint in hints):
                kind = candidate
                break
        return {
            "kind": kind,
            "description": f"Mock analysis ({kind})",
        }

    @staticmethod
    def _mock_script(text: str) -> Dict[str, Any]:
        topic_match = _TOPIC_LINE.search(text)
        topic = topic_match.group(1).strip() if topic_match else "奇幻短片"

        characters: List[Dict[str, str]] = []
        environments: List[Dict[str, str]] = []
        for kind, name, asset_id in _CATALOG_LINE.findall(text):
            entry = {"id": asset_id, "name": name.strip(), "visual_prompt": f"{name.strip()}, reference look"}
            (characters if kind == "character" else environments).append(entry)
        if not characters:
            characters.append({"id": "c1", "name": "主角", "visual_prompt": f"Protagonist of: {topic}, full body"})
        if not environments:
            environments.append({"id": "e1", "name": "主场景", "visual_prompt": f"Main location of: {topic}, wide"})

        char_ids = [character["id"] for character in characters]
        env_id = environments[0]["id"]
        beats = (
            ("wide", "开场建立环境"),
            ("medium", "主角行动"),
            ("close-up", "情绪收尾"),
        )
        scenes = [
            {
                "id": idx,
                "char_ids": char_ids,
                "env_id": env_id,
                "shot_type": shot_type,
                "desc": f"{beat}：{topic}",
                "action_prompt": f"{shot_type} shot, {beat}, {topic}",
            }
            for idx, (shot_type, beat) in enumerate(beats, start=1)
        ]
        return {
            "title": topic[:24],
            "characters": characters,
            "environments": environments,
            "scenes": scenes,
        }
