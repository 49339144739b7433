"""Run orchestration for the auto-cinematography engine."""

from __future__ import annotations

import asyncio
import itertools
import json
import time
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union

from .catalog import AssetCatalog
from .config import PipelineConfig
from .errors import AssetNotFoundError, RunInProgressError, SceneNotFoundError
from .nodes.assets import MaterializeAssets, resolve_entity
from .nodes.base import Node
from .nodes.scenes import ComposeScenes, compose_scene
from .nodes.script import ScriptPlanner
from .nodes.video import GenerateVideos, render_clip
from .services.base import GenerativeClient
from .services.mock import MockGenerativeClient
from .services.poe import PoeClient
from .types import (
    AssetImage,
    CharacterDef,
    Clip,
    CustomAsset,
    EnvironmentDef,
    Frame,
    RunStage,
    RunState,
    SceneDef,
)
from .utils.run_logger import RunLogger


class RunController:
    """Owns the run state and exposes the full run plus per-scene operations.

    One full run at a time walks ``planning_script -> materializing_assets ->
    compositing_scenes -> (generating_videos) -> done``. Once a script exists,
    single scenes can be regenerated or animated while other work continues;
    duplicate requests for the same scene are ignored until the first one
    finishes.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        client: GenerativeClient | None = None,
        catalog: AssetCatalog | None = None,
    ) -> None:
        self.config = config or PipelineConfig.from_env()
        self.logger = RunLogger(base_dir=self.config.runs_dir)
        self.client = client or self._build_client()
        self.catalog = catalog if catalog is not None else AssetCatalog()
        self.state = RunState()
        self.consistency_mode = self.config.consistency_mode
        self.video_settings = self.config.video
        self._run_lock = asyncio.Lock()
        self._run_sequence = itertools.count(1)

    # ---------- Full run ----------

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    async def run(self, topic: str, *, enable_video: Optional[bool] = None) -> RunState:
        """Execute every stage for ``topic`` and return the final state."""
        if self._run_lock.locked():
            raise RunInProgressError("A full run is already in progress.")

        async with self._run_lock:
            state = self.state
            state.reset(run_id=self._new_run_id(), topic=topic)
            with_video = self.config.enable_video if enable_video is None else enable_video
            state.log.info(f"🚀 开始新项目：{topic}")

            for stage, node in self._build_stages(with_video):
                self._enter(stage)
                await self._invoke_node(node, state)

            self._enter(RunStage.DONE)
            state.log.info("🏁 全部完成")
            return state

    def _build_stages(self, with_video: bool) -> Sequence[Tuple[RunStage, Node]]:
        """Construct node instances wired with the current services."""
        stages: List[Tuple[RunStage, Node]] = [
            (
                RunStage.PLANNING_SCRIPT,
                ScriptPlanner(self.logger, self.client, self.catalog, model=self.config.text_model),
            ),
            (
                RunStage.MATERIALIZING_ASSETS,
                MaterializeAssets(self.logger, self.client, self.catalog, model=self.config.image_model),
            ),
            (
                RunStage.COMPOSITING_SCENES,
                ComposeScenes(
                    self.logger,
                    self.client,
                    self.catalog,
                    consistency_mode=self.consistency_mode,
                    model=self.config.image_model,
                ),
            ),
        ]
        if with_video:
            stages.append((RunStage.GENERATING_VIDEOS, GenerateVideos(self.logger, self.client, self.video_settings)))
        return stages

    def _enter(self, stage: RunStage) -> None:
        self.state.stage = stage
        self.state.log.stage(stage.value)

    # ---------- Ad-hoc operations ----------

    async def regenerate_scene(self, scene_id: int | str) -> Optional[Frame]:
        """Re-render one scene against the current anchor.

        Returns ``None`` without calling the client when the same scene is
        already being regenerated, and ``None`` when a new run started
        before the frame arrived.
        """
        scene = self._require_scene(scene_id)
        state = self.state
        with state.in_flight_regenerate.claim(scene.id) as acquired:
            if not acquired:
                state.log.info(f"⏳ 场景 {scene.id}: 正在重绘，忽略重复请求")
                return None
            state.log.info(f"🔄 场景 {scene.id}: 重新生成画面")
            return await compose_scene(
                state,
                scene,
                client=self.client,
                catalog=self.catalog,
                consistency_mode=self.consistency_mode,
                model=self.config.image_model,
            )

    async def generate_video_for_scene(self, scene_id: int | str) -> Optional[Clip]:
        """Animate the current frame of one scene.

        Returns ``None`` when a video for the scene is already in flight, when
        the scene has no frame yet, when the video call fails, or when a new run
        started before the clip arrived.
        """
        scene = self._require_scene(scene_id)
        state = self.state
        with state.in_flight_video.claim(scene.id) as acquired:
            if not acquired:
                state.log.info(f"⏳ 场景 {scene.id}: 视频已在生成中，忽略重复请求")
                return None
            frame = state.frames.get(scene.id)
            if frame is None:
                state.log.warning(f"⚠️ 场景 {scene.id}: 尚无画面，无法生成视频")
                return None
            return await render_clip(state, scene, frame, client=self.client, settings=self.video_settings)

    async def reresolve_asset(self, owner_id: str) -> Optional[AssetImage]:
        """Resolve a single character or environment again and overwrite its image.

        Returns ``None`` when a new run started before the image arrived.
        """
        entity = self._require_entity(owner_id)
        return await resolve_entity(
            entity,
            client=self.client,
            catalog=self.catalog,
            state=self.state,
            model=self.config.image_model,
        )

    async def upload_asset(self, path: Union[str, Path], *, name: Optional[str] = None) -> CustomAsset:
        """Add an image file to the catalog and classify it."""
        asset = await self.catalog.upload(
            path,
            self.client,
            name=name,
            model=self.config.text_model,
            log=self.state.log,
        )
        self.state.log.info(f"📥 已添加素材 {asset.name} ({asset.kind.value})")
        return asset

    def _require_scene(self, scene_id: int | str) -> SceneDef:
        try:
            ordinal = int(scene_id)
        except (TypeError, ValueError):
            raise SceneNotFoundError(scene_id) from None
        script = self.state.script
        scene = script.scene(ordinal) if script is not None else None
        if scene is None:
            raise SceneNotFoundError(scene_id)
        return scene

    def _require_entity(self, owner_id: str) -> Union[CharacterDef, EnvironmentDef]:
        script = self.state.script
        if script is not None:
            for entity in (*script.characters, *script.environments):
                if entity.id == owner_id:
                    return entity
        raise AssetNotFoundError(owner_id)

    # ---------- Services ----------

    def _build_client(self) -> GenerativeClient:
        if self.config.enable_mock_generation:
            return MockGenerativeClient()
        return PoeClient(
            api_key=self.config.api_key,
            api_url=self.config.api_url,
            text_model=self.config.text_model,
            image_model=self.config.image_model,
            video_model=self.config.video_model,
            timeout=self.config.timeout,
        )

    # ---------- Step tracing ----------

    async def _invoke_node(self, node: Node, state: RunState) -> RunState:
        """Execute a node while emitting structured IO traces."""
        if not self.config.trace_steps:
            return await node.run(state)

        self._print_step_io(node.name, "input", self._snapshot_state(state))
        started = time.perf_counter()
        updated_state = await node.run(state)
        elapsed = time.perf_counter() - started
        self._print_step_io(node.name, "output", self._snapshot_state(updated_state), elapsed)
        return updated_state

    def _snapshot_state(self, state: RunState) -> Any:
        """Return a compact serialisable view of the state for logging."""
        raw = {
            "run_id": state.run_id,
            "topic": state.topic,
            "stage": state.stage.value,
            "script": state.script.model_dump(mode="json") if state.script else None,
            "consistency_anchor": state.consistency_anchor,
            "asset_images": {key: asdict(value) for key, value in state.asset_images.items()},
            "frames": {str(key): asdict(value) for key, value in state.frames.items()},
            "clips": {str(key): asdict(value) for key, value in state.clips.items()},
        }
        return self._strip_empty(raw)

    def _strip_empty(self, value: Any) -> Any:
        """Recursively remove empty containers for cleaner logging."""
        if isinstance(value, dict):
            return {k: self._strip_empty(v) for k, v in value.items() if not self._is_empty(v)}
        if isinstance(value, (list, tuple)):
            return [self._strip_empty(item) for item in value if not self._is_empty(item)]
        return value

    @staticmethod
    def _is_empty(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str) and value == "":
            return True
        if isinstance(value, (list, tuple, set, dict)) and len(value) == 0:
            return True
        return False

    def _print_step_io(self, step: str, direction: str, payload: Any, elapsed: float | None = None) -> None:
        """Pretty-print the input/output payload for each step."""
        prefix = ">>" if direction == "input" else "<<"
        timing = f" [{elapsed:.2f}s]" if elapsed is not None and direction == "output" else ""
        body = json.dumps(payload, ensure_ascii=False, indent=2, default=self._json_default)
        print(f"[{step}] {prefix} {direction}{timing}:\n{body}\n")

    @staticmethod
    def _json_default(obj: Any) -> Any:
        if isinstance(obj, Enum):
            return obj.value
        if is_dataclass(obj):
            return asdict(obj)
        return str(obj)

    def _new_run_id(self) -> str:
        """Return a unique run identifier: UTC timestamp plus a per-controller sequence."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        return f"{stamp}-{next(self._run_sequence)}"
