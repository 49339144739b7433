"""Per-run prompt and response traces kept on disk for debugging."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .files import ensure_dir, write_json, write_text


@dataclass(slots=True)
class StepLogPaths:
    """Convenience container with derived log file paths."""

    prompt_path: Path
    response_path: Path


class RunLogger:
    """Persists prompts and responses under ``runs/<run_id>``.

    Passing ``base_dir=None`` disables persistence entirely; the pipeline then
    only publishes its in-memory event log.
    """

    def __init__(self, base_dir: str | Path | None = "runs") -> None:
        self._base_dir = Path(base_dir) if base_dir else None

    @property
    def enabled(self) -> bool:
        return self._base_dir is not None

    def step_paths(self, run_id: str, step_name: str) -> StepLogPaths:
        """Return the paths used for logging a specific step."""
        if self._base_dir is None:
            raise RuntimeError("RunLogger is disabled; no step paths available.")
        run_root = ensure_dir(self._base_dir / run_id)
        return StepLogPaths(
            prompt_path=run_root / f"{step_name}-prompt.txt",
            response_path=run_root / f"{step_name}-response.json",
        )

    def log_prompt(self, run_id: str | None, step_name: str, prompt: str) -> None:
        """Persist the raw prompt text."""
        if self._base_dir is None or not run_id:
            return
        write_text(self.step_paths(run_id, step_name).prompt_path, prompt)

    def log_response(self, run_id: str | None, step_name: str, response: Any) -> None:
        """Persist the structured response."""
        if self._base_dir is None or not run_id:
            return
        write_json(self.step_paths(run_id, step_name).response_path, response)
