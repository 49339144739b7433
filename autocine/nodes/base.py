"""Node abstractions shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..types import RunState
from ..utils.run_logger import RunLogger


class Node(Protocol):
    """A stage of the full run that mutates the shared run state."""

    name: str

    async def run(self, state: RunState) -> RunState:
        ...


@dataclass(slots=True)
class BaseNode:
    """Convenience base for nodes needing trace logging support."""

    name: str
    logger: RunLogger

    def log_prompt(self, state: RunState, prompt: str, step: str | None = None) -> None:
        """Persist the prompt under the current run."""
        self.logger.log_prompt(state.run_id, step or self.name, prompt)

    def log_response(self, state: RunState, response: object, step: str | None = None) -> None:
        """Persist the response under the current run."""
        self.logger.log_response(state.run_id, step or self.name, response)
