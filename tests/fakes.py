"""Scripted generative client used across the test-suite."""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from autocine.errors import ExtractionFailure, GenerativeError

SCRIPT_PAYLOAD: Dict[str, Any] = {
    "title": "森林冒险",
    "characters": [{"id": "c1", "name": "小狐狸", "visual_prompt": "a small red fox"}],
    "environments": [{"id": "e1", "name": "森林", "visual_prompt": "a misty forest"}],
    "scenes": [
        {"id": 1, "char_ids": ["c1"], "env_id": "e1", "shot_type": "wide", "desc": "开场", "action_prompt": "scene one"},
        {"id": 2, "char_ids": ["c1"], "env_id": "e1", "shot_type": "medium", "desc": "行动", "action_prompt": "scene two"},
        {"id": 3, "char_ids": ["c1"], "env_id": "e1", "shot_type": "close-up", "desc": "收尾", "action_prompt": "scene three"},
    ],
}


class ScriptedClient:
    """Records every call and fails on demand.

    ``fail_images`` holds prompts whose image call fails; ``image_gate`` and
    ``video_gate`` hold calls open until the test sets the event.
    """

    def __init__(
        self,
        *,
        text_reply: Optional[str] = None,
        fail_text: bool = False,
        fail_images: Sequence[str] = (),
        fail_video: bool = False,
        image_gate: Optional[asyncio.Event] = None,
        video_gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.text_reply = json.dumps(SCRIPT_PAYLOAD, ensure_ascii=False) if text_reply is None else text_reply
        self.fail_text = fail_text
        self.fail_images: Set[str] = set(fail_images)
        self.fail_video = fail_video
        self.image_gate = image_gate
        self.video_gate = video_gate
        self._serial = itertools.count(1)
        self.text_calls: List[Tuple[List[Dict[str, Any]], bool]] = []
        self.image_calls: List[Tuple[str, Tuple[str, ...]]] = []
        self.video_calls: List[Tuple[str, Optional[str], Optional[str]]] = []

    async def text_complete(self, messages, json_mode=False, *, model=None) -> str:
        self.text_calls.append((messages, json_mode))
        if self.fail_text:
            raise GenerativeError("text endpoint unavailable")
        return self.text_reply

    async def image_generate(self, prompt, reference_image_urls=(), *, model=None) -> str:
        self.image_calls.append((prompt, tuple(reference_image_urls)))
        if self.image_gate is not None:
            await self.image_gate.wait()
        if prompt in self.fail_images:
            raise ExtractionFailure(f"no image URL for {prompt!r}")
        return f"https://img.test/{next(self._serial)}.png"

    async def video_generate(self, prompt, start_image_url, *, model=None) -> str:
        self.video_calls.append((prompt, start_image_url, model))
        if self.video_gate is not None:
            await self.video_gate.wait()
        if self.fail_video:
            raise GenerativeError("video endpoint unavailable")
        return f"https://video.test/{next(self._serial)}.mp4"

    def image_prompts(self) -> List[str]:
        return [prompt for prompt, _ in self.image_calls]
