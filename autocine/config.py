"""Configuration containers for the auto-cinematography pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar

from .types import VideoSettings


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class PipelineConfig:
    """Static configuration applied to every pipeline run."""

    env_prefix: ClassVar[str] = "AUTOCINE_"

    runs_dir: str | None = "runs"
    enable_mock_generation: bool = True
    api_key: str | None = None
    api_url: str = "https://api.poe.com/v1"
    text_model: str = "gpt-5"
    image_model: str = "nano-banana-pro"
    consistency_mode: bool = True
    enable_video: bool = True
    video_model: str = "sora-2"
    video_resolution: str = "1280x720"
    video_duration: str = "8s"
    trace_steps: bool = False
    timeout: int = 300

    @property
    def video(self) -> VideoSettings:
        """Video settings applied to every clip of a run."""
        return VideoSettings(
            model=self.video_model,
            resolution=self.video_resolution,
            duration=self.video_duration,
        )

    @classmethod
    def from_env(cls) -> "PipelineConfig":
        """Create a config object populated from environment variables."""
        prefix = cls.env_prefix
        runs_dir = os.getenv(f"{prefix}RUNS_DIR", "runs")
        return cls(
            runs_dir=runs_dir or None,
            enable_mock_generation=_env_flag(f"{prefix}ENABLE_MOCKS", "true"),
            api_key=os.getenv("POE_API_KEY"),
            api_url=os.getenv("POE_API_URL", "https://api.poe.com/v1"),
            text_model=os.getenv(f"{prefix}TEXT_MODEL", "gpt-5"),
            image_model=os.getenv(f"{prefix}IMAGE_MODEL", "nano-banana-pro"),
            consistency_mode=_env_flag(f"{prefix}CONSISTENCY", "true"),
            enable_video=_env_flag(f"{prefix}ENABLE_VIDEO", "true"),
            video_model=os.getenv(f"{prefix}VIDEO_MODEL", "sora-2"),
            video_resolution=os.getenv(f"{prefix}VIDEO_RESOLUTION", "1280x720"),
            video_duration=os.getenv(f"{prefix}VIDEO_DURATION", "8s"),
            trace_steps=_env_flag(f"{prefix}TRACE", "false"),
            timeout=int(os.getenv(f"{prefix}TIMEOUT", "300")),
        )
