"""Scene frame composition and the consistency chain."""

from __future__ import annotations

from typing import List, Optional

from ..catalog import AssetCatalog
from ..errors import CompositionFailure, GenerativeError
from ..services.base import GenerativeClient
from ..types import Frame, FrameOrigin, RunState, SceneDef
from ..utils.placeholders import scene_placeholder_url
from ..utils.run_logger import RunLogger
from .base import BaseNode


def reference_images(
    state: RunState,
    scene: SceneDef,
    catalog: AssetCatalog,
    consistency_mode: bool,
) -> List[str]:
    """Ordered references: anchor, environment, characters, scale references."""
    refs: List[str] = []
    if consistency_mode and state.consistency_anchor:
        refs.append(state.consistency_anchor)
    if scene.env_id:
        env_image = state.asset_images.get(scene.env_id)
        if env_image is not None:
            refs.append(env_image.url)
    for char_id in scene.char_ids:
        char_image = state.asset_images.get(char_id)
        if char_image is not None:
            refs.append(char_image.url)
    refs.extend(asset.image_ref for asset in catalog.scale_refs())
    return refs


async def compose_scene(
    state: RunState,
    scene: SceneDef,
    *,
    client: GenerativeClient,
    catalog: AssetCatalog,
    consistency_mode: bool,
    model: Optional[str] = None,
) -> Optional[Frame]:
    """Render one scene and store it as the scene's current frame.

    Only a generated frame moves the consistency anchor; a placeholder leaves
    the anchor where it was. Returns ``None`` without touching the state when
    a new run replaced the one this call started under.
    """
    run_id = state.run_id
    refs = reference_images(state, scene, catalog, consistency_mode)
    prompt = scene.action_prompt.strip() or scene.desc
    state.log.info(f"🎬 场景 {scene.id}: 生成画面（参考图 {len(refs)} 张）")

    failure: Optional[CompositionFailure] = None
    try:
        frame = await _render(scene, prompt, refs, client=client, model=model)
    except CompositionFailure as exc:
        frame = Frame(scene_id=scene.id, url=scene_placeholder_url(scene.id), origin=FrameOrigin.PLACEHOLDER)
        failure = exc

    if state.run_id != run_id:
        state.log.warning(f"⏭️ 场景 {scene.id}: 所属运行已结束，丢弃旧画面")
        return None
    if failure is not None:
        state.log.warning(f"⚠️ 场景 {scene.id}: 画面生成失败，使用占位图 ({failure})")
    else:
        state.consistency_anchor = frame.url
        state.log.info(f"✅ 场景 {scene.id}: 画面完成")

    state.frames[scene.id] = frame
    return frame


async def _render(
    scene: SceneDef,
    prompt: str,
    refs: List[str],
    *,
    client: GenerativeClient,
    model: Optional[str],
) -> Frame:
    try:
        url = await client.image_generate(prompt, refs, model=model)
    except GenerativeError as exc:
        raise CompositionFailure(str(exc)) from exc
    return Frame(scene_id=scene.id, url=url, origin=FrameOrigin.GENERATED)


class ComposeScenes(BaseNode):
    """Renders scenes in ascending id order, chaining each to the last real frame."""

    def __init__(
        self,
        logger: RunLogger,
        client: GenerativeClient,
        catalog: AssetCatalog,
        consistency_mode: bool = True,
        model: Optional[str] = None,
    ) -> None:
        super().__init__(name="ComposeScenes", logger=logger)
        self._client = client
        self._catalog = catalog
        self._consistency_mode = consistency_mode
        self._model = model

    async def run(self, state: RunState) -> RunState:
        if state.script is None:
            raise RuntimeError("ComposeScenes requires a planned script.")

        self.log_prompt(
            state,
            "\n".join(f"[{scene.id}] {scene.shot_type} {scene.action_prompt}" for scene in state.script.scenes),
        )
        for scene in state.script.scenes:
            await compose_scene(
                state,
                scene,
                client=self._client,
                catalog=self._catalog,
                consistency_mode=self._consistency_mode,
                model=self._model,
            )

        self.log_response(
            state,
            {
                "frames": {str(scene_id): frame.origin.value for scene_id, frame in state.frames.items()},
                "consistency_anchor": state.consistency_anchor,
            },
        )
        return state
