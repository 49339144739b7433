"""Core data models used across the auto-cinematography pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .utils.events import EventLog, ObservableMap
from .utils.inflight import InFlightSet


class AssetKind(str, Enum):
    CHARACTER = "character"
    ENVIRONMENT = "environment"
    SCALE_REF = "scale_ref"


class AnalysisState(str, Enum):
    PENDING = "pending"
    DONE = "done"


class AssetOrigin(str, Enum):
    REUSED = "reused"
    GENERATED = "generated"
    PLACEHOLDER = "placeholder"


class FrameOrigin(str, Enum):
    GENERATED = "generated"
    PLACEHOLDER = "placeholder"


class RunStage(str, Enum):
    IDLE = "idle"
    PLANNING_SCRIPT = "planning_script"
    MATERIALIZING_ASSETS = "materializing_assets"
    COMPOSITING_SCENES = "compositing_scenes"
    GENERATING_VIDEOS = "generating_videos"
    DONE = "done"


@dataclass(slots=True)
class CustomAsset:
    """A user-supplied image that can stand in for a generated one."""

    id: str
    kind: AssetKind
    name: str
    image_ref: str
    description: str = ""
    analysis_state: AnalysisState = AnalysisState.PENDING


# ---------- Script (parsed from the planner's JSON output) ----------


class ScriptModel(BaseModel):
    """Base for script parts: immutable, tolerant of extra keys."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class CharacterDef(ScriptModel):
    id: str = Field(..., description="Stable id; reuse a custom asset id when the character matches it.")
    name: str = Field(..., description="Display name of the character.")
    visual_prompt: str = Field("", description="Standalone image prompt describing the character's look.")


class EnvironmentDef(ScriptModel):
    id: str = Field(..., description="Stable id; reuse a custom asset id when the environment matches it.")
    name: str = Field(..., description="Display name of the environment.")
    visual_prompt: str = Field("", description="Standalone image prompt describing the environment.")


class SceneDef(ScriptModel):
    id: int = Field(..., description="Ordinal of the scene, starting at 1.")
    char_ids: Tuple[str, ...] = Field((), description="Ids of the characters that appear in the scene.")
    env_id: Optional[str] = Field(None, description="Id of the environment the scene takes place in.")
    shot_type: str = Field("", description="Shot type, e.g. wide, medium, close-up.")
    desc: str = Field(
        "",
        validation_alias=AliasChoices("desc", "description"),
        description="What happens in the scene.",
    )
    action_prompt: str = Field(..., description="Image/video prompt describing the action of the scene.")

    @field_validator("env_id", mode="before")
    @classmethod
    def _blank_env_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Script(ScriptModel):
    title: str = Field(..., description="Title of the piece.")
    characters: Tuple[CharacterDef, ...] = Field((), description="Every character that appears in a scene.")
    environments: Tuple[EnvironmentDef, ...] = Field((), description="Every environment used by a scene.")
    scenes: Tuple[SceneDef, ...] = Field(..., description="Ordered scenes of the piece.")

    @field_validator("scenes", mode="after")
    @classmethod
    def _ordered_unique_scenes(cls, scenes: Tuple[SceneDef, ...]) -> Tuple[SceneDef, ...]:
        if not scenes:
            raise ValueError("script must contain at least one scene")
        ids = [scene.id for scene in scenes]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate scene ids: {ids}")
        return tuple(sorted(scenes, key=lambda scene: scene.id))

    def scene(self, scene_id: int) -> Optional[SceneDef]:
        for scene in self.scenes:
            if scene.id == scene_id:
                return scene
        return None


# ---------- Rendered artifacts ----------


@dataclass(slots=True, frozen=True)
class AssetImage:
    """Resolved image for a character or environment definition."""

    owner_id: str
    url: str
    origin: AssetOrigin


@dataclass(slots=True, frozen=True)
class Frame:
    """The current rendered image of a scene."""

    scene_id: int
    url: str
    origin: FrameOrigin


@dataclass(slots=True, frozen=True)
class Clip:
    """A video clip rendered from a scene frame."""

    scene_id: int
    url: str


@dataclass(slots=True, frozen=True)
class VideoSettings:
    """Run-level video configuration."""

    model: str = "sora-2"
    resolution: str = "1280x720"
    duration: str = "8s"

    @property
    def duration_seconds(self) -> str:
        return self.duration.strip().rstrip("sS") or "8"


@dataclass(slots=True)
class RunState:
    """Mutable state shared between the run stages and ad-hoc operations."""

    run_id: Optional[str] = None
    topic: Optional[str] = None
    stage: RunStage = RunStage.IDLE
    script: Optional[Script] = None
    consistency_anchor: Optional[str] = None
    asset_images: ObservableMap[str, AssetImage] = field(default_factory=ObservableMap)
    frames: ObservableMap[int, Frame] = field(default_factory=ObservableMap)
    clips: ObservableMap[int, Clip] = field(default_factory=ObservableMap)
    log: EventLog = field(default_factory=EventLog)
    in_flight_regenerate: InFlightSet = field(default_factory=lambda: InFlightSet("regenerate"))
    in_flight_video: InFlightSet = field(default_factory=lambda: InFlightSet("video"))

    def reset(self, *, run_id: str, topic: str) -> None:
        """Clear per-run bookkeeping; the in-flight sets survive across runs."""
        self.run_id = run_id
        self.topic = topic
        self.stage = RunStage.IDLE
        self.script = None
        self.consistency_anchor = None
        self.asset_images.clear()
        self.frames.clear()
        self.clips.clear()
        self.log.clear()
