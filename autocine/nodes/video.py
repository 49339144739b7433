"""Per-scene video clips rendered from the current scene frames."""

from __future__ import annotations

from typing import Dict, Optional

from ..errors import GenerativeError, VideoFailure
from ..services.base import GenerativeClient
from ..types import Clip, Frame, RunState, SceneDef, VideoSettings
from ..utils.run_logger import RunLogger
from .base import BaseNode

# Video models that read size and duration from ``--flag value`` suffixes.
PARAMETER_VIDEO_MODEL_PREFIXES = ("sora",)


def takes_parameter_suffix(model: str) -> bool:
    return model.strip().lower().startswith(PARAMETER_VIDEO_MODEL_PREFIXES)


def build_video_prompt(action_prompt: str, settings: VideoSettings) -> str:
    """Append resolution and duration in the form the video model expects."""
    base = action_prompt.strip()
    seconds = settings.duration_seconds
    if takes_parameter_suffix(settings.model):
        return f"{base} --size {settings.resolution} --duration {seconds}"
    return f"{base}. Resolution {settings.resolution}, {seconds} seconds long."


async def render_clip(
    state: RunState,
    scene: SceneDef,
    frame: Frame,
    *,
    client: GenerativeClient,
    settings: VideoSettings,
) -> Optional[Clip]:
    """Animate ``frame``; a failure is logged and yields no clip.

    Placeholder frames are valid start images. A clip that finishes after a
    new run has started is dropped.
    """
    run_id = state.run_id
    prompt = build_video_prompt(scene.action_prompt or scene.desc, settings)
    state.log.info(f"🎥 场景 {scene.id}: 生成视频 ({settings.model})")
    try:
        clip = await _animate(scene, frame, prompt, client=client, settings=settings)
    except VideoFailure as exc:
        state.log.warning(f"⚠️ 场景 {scene.id}: 视频生成失败 ({exc})")
        return None

    if state.run_id != run_id:
        state.log.warning(f"⏭️ 场景 {scene.id}: 所属运行已结束，丢弃旧视频")
        return None
    state.clips[scene.id] = clip
    state.log.info(f"✅ 场景 {scene.id}: 视频完成")
    return clip


async def _animate(
    scene: SceneDef,
    frame: Frame,
    prompt: str,
    *,
    client: GenerativeClient,
    settings: VideoSettings,
) -> Clip:
    try:
        url = await client.video_generate(prompt, frame.url, model=settings.model)
    except GenerativeError as exc:
        raise VideoFailure(str(exc)) from exc
    return Clip(scene_id=scene.id, url=url)


class GenerateVideos(BaseNode):
    """Renders a clip for every scene that has a frame, in scene order."""

    def __init__(self, logger: RunLogger, client: GenerativeClient, settings: VideoSettings) -> None:
        super().__init__(name="GenerateVideos", logger=logger)
        self._client = client
        self._settings = settings

    async def run(self, state: RunState) -> RunState:
        if state.script is None:
            raise RuntimeError("GenerateVideos requires a planned script.")

        self.log_prompt(
            state,
            "\n".join(
                f"[{scene.id}] {build_video_prompt(scene.action_prompt or scene.desc, self._settings)}"
                for scene in state.script.scenes
            ),
        )
        outcome: Dict[str, Optional[str]] = {}
        for scene in state.script.scenes:
            frame = state.frames.get(scene.id)
            if frame is None:
                continue
            with state.in_flight_video.claim(scene.id) as acquired:
                if not acquired:
                    state.log.info(f"⏳ 场景 {scene.id}: 视频已在生成中，跳过")
                    continue
                clip = await render_clip(state, scene, frame, client=self._client, settings=self._settings)
            outcome[str(scene.id)] = clip.url if clip else None

        self.log_response(state, {"clips": outcome})
        return state
