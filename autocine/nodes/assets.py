"""Resolve every character and environment of a script to an image."""

from __future__ import annotations

from typing import Dict, List, Optional, Union

from ..catalog import AssetCatalog
from ..errors import AssetResolutionFailure, GenerativeError
from ..services.base import GenerativeClient
from ..types import AssetImage, AssetOrigin, CharacterDef, EnvironmentDef, RunState
from ..utils.placeholders import asset_placeholder_url
from ..utils.run_logger import RunLogger
from .base import BaseNode

EntityDef = Union[CharacterDef, EnvironmentDef]


async def resolve_entity(
    entity: EntityDef,
    *,
    client: GenerativeClient,
    catalog: AssetCatalog,
    state: RunState,
    model: Optional[str] = None,
) -> Optional[AssetImage]:
    """Reuse a custom asset with the same id, else generate, else placeholder.

    The result is written to ``state.asset_images`` and returned, unless a new
    run replaced the one this call started under; then nothing is written and
    ``None`` is returned.
    """
    run_id = state.run_id
    custom = catalog.find(entity.id)
    if custom is not None:
        image = AssetImage(owner_id=entity.id, url=custom.image_ref, origin=AssetOrigin.REUSED)
        state.log.info(f"🔗 {entity.name}: 直接引用自定义素材")
    else:
        try:
            image = await _generate(entity, client=client, model=model)
        except AssetResolutionFailure as exc:
            image = AssetImage(
                owner_id=entity.id,
                url=asset_placeholder_url(entity.name),
                origin=AssetOrigin.PLACEHOLDER,
            )
            message = f"⚠️ {entity.name}: 生成失败，使用占位图 ({exc})"
        else:
            message = f"🎨 {entity.name}: AI 绘制完成"

        if state.run_id != run_id:
            state.log.warning(f"⏭️ {entity.name}: 所属运行已结束，丢弃旧素材图")
            return None
        if image.origin == AssetOrigin.PLACEHOLDER:
            state.log.warning(message)
        else:
            state.log.info(message)

    state.asset_images[entity.id] = image
    return image


async def _generate(entity: EntityDef, *, client: GenerativeClient, model: Optional[str]) -> AssetImage:
    prompt = entity.visual_prompt.strip() or entity.name
    try:
        url = await client.image_generate(prompt, (), model=model)
    except GenerativeError as exc:
        raise AssetResolutionFailure(str(exc)) from exc
    return AssetImage(owner_id=entity.id, url=url, origin=AssetOrigin.GENERATED)


class MaterializeAssets(BaseNode):
    """Resolves characters first, then environments, one at a time."""

    def __init__(
        self,
        logger: RunLogger,
        client: GenerativeClient,
        catalog: AssetCatalog,
        model: Optional[str] = None,
    ) -> None:
        super().__init__(name="MaterializeAssets", logger=logger)
        self._client = client
        self._catalog = catalog
        self._model = model

    async def run(self, state: RunState) -> RunState:
        if state.script is None:
            raise RuntimeError("MaterializeAssets requires a planned script.")

        entities: List[EntityDef] = [*state.script.characters, *state.script.environments]
        self.log_prompt(state, "\n".join(f"{entity.id}: {entity.visual_prompt or entity.name}" for entity in entities))

        resolved: Dict[str, str] = {}
        for entity in entities:
            image = await resolve_entity(
                entity,
                client=self._client,
                catalog=self._catalog,
                state=state,
                model=self._model,
            )
            resolved[entity.id] = image.origin.value

        self.log_response(state, {"assets": resolved})
        return state
