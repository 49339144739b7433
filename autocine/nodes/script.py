"""Script planning: topic plus custom assets into a structured Script."""

from __future__ import annotations

import json
from typing import List, Optional

from pydantic import ValidationError

from ..catalog import AssetCatalog
from ..errors import GenerativeError, ScriptParseError
from ..services.base import GenerativeClient, Message
from ..types import CharacterDef, EnvironmentDef, RunState, SceneDef, Script
from ..utils.extract import clean_json_text
from ..utils.prompts import load_prompt
from ..utils.run_logger import RunLogger
from .base import BaseNode

DEMO_SCRIPT = Script(
    title="演示项目",
    characters=(
        CharacterDef(
            id="c1",
            name="旅人",
            visual_prompt="A young traveler in a hooded cloak, full body, cinematic lighting",
        ),
    ),
    environments=(
        EnvironmentDef(
            id="e1",
            name="黄昏山谷",
            visual_prompt="A misty valley at dusk with distant mountains, wide establishing view",
        ),
    ),
    scenes=(
        SceneDef(
            id=1,
            char_ids=("c1",),
            env_id="e1",
            shot_type="wide",
            desc="旅人站在山谷入口，望向远方。",
            action_prompt="Wide shot: the hooded traveler stands at the valley entrance at dusk, gazing into the distance",
        ),
    ),
)


def demo_script() -> Script:
    """The fixed single-scene script used whenever planning fails."""
    return DEMO_SCRIPT


def parse_script(raw: str) -> Script:
    """Parse a planner reply into a Script or raise :class:`ScriptParseError`."""
    cleaned = clean_json_text(raw)
    if not cleaned:
        raise ScriptParseError("planner reply is empty")
    try:
        return Script.model_validate_json(cleaned)
    except ValidationError as exc:
        raise ScriptParseError(f"planner reply is not a valid script: {exc.error_count()} error(s)") from exc


class ScriptPlanner(BaseNode):
    """Asks the text model for a script; never blocks the run."""

    def __init__(
        self,
        logger: RunLogger,
        client: GenerativeClient,
        catalog: AssetCatalog,
        model: Optional[str] = None,
    ) -> None:
        super().__init__(name="PlanScript", logger=logger)
        self._client = client
        self._catalog = catalog
        self._model = model

    async def run(self, state: RunState) -> RunState:
        state.script = await self.plan(state, state.topic or "")
        return state

    async def plan(self, state: RunState, topic: str) -> Script:
        messages = self.build_messages(topic)
        self.log_prompt(state, json.dumps(messages, ensure_ascii=False, indent=2))
        state.log.info("🧠 正在规划剧本...")

        try:
            raw = await self._client.text_complete(messages, json_mode=True, model=self._model)
            script = parse_script(raw)
        except (GenerativeError, ScriptParseError) as exc:
            state.log.warning(f"⚠️ 剧本规划失败 ({exc})，已切换为演示剧本")
            self.log_response(state, {"status": "fallback", "error": str(exc)})
            return demo_script()

        state.log.info(f"📜 剧本就绪：《{script.title}》，共 {len(script.scenes)} 个场景")
        self.log_response(state, script.model_dump(mode="json"))
        return script

    def build_messages(self, topic: str) -> List[Message]:
        system = load_prompt(
            "plan_script_system",
            {
                "asset_context": self._asset_context(),
                "output_schema": json.dumps(Script.model_json_schema(), ensure_ascii=False),
            },
        )
        user = load_prompt("plan_script_user", {"topic": topic.strip()})
        return [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]

    def _asset_context(self) -> str:
        assets = self._catalog.plannable()
        if not assets:
            return "（用户未提供素材）"
        lines = ["用户提供了以下素材，相关时请直接复用其 id："]
        for asset in assets:
            lines.append(f"- [{asset.kind.value}] {asset.name} | id: {asset.id} | 描述: {asset.description}")
        return "\n".join(lines)
