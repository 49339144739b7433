"""autocine package.

Turns a short topic into a visually consistent sequence of scene images and,
optionally, per-scene video clips by orchestrating text, image and video
generation endpoints.
"""

from .catalog import AssetCatalog  # noqa: F401
from .config import PipelineConfig  # noqa: F401
from .pipeline import RunController  # noqa: F401

__all__ = ["AssetCatalog", "PipelineConfig", "RunController"]
