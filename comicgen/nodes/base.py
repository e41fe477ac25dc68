"""Node abstractions shared by concrete pipeline steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol

from ..types import RunState
from ..utils.run_logger import RunLogger


class Node(Protocol):
    """A unit of work that mutates the shared run state."""

    name: str

    def run(self, state: RunState) -> RunState:
        ...


@dataclass(slots=True)
class BaseNode:
    """Convenience base for nodes that persist prompts and responses.

    ``logger`` may be ``None`` for callers that only want the side effects
    (for example the standalone ``composite`` and ``pdf`` commands).
    """

    name: str
    run_id: str
    logger: Optional[RunLogger]

    def log_prompt(self, prompt: str, step: Optional[str] = None) -> None:
        """Persist the prompt."""
        if self.logger is not None:
            self.logger.log_prompt(self.run_id, step or self.name, prompt)

    def log_response(self, response: object, step: Optional[str] = None) -> None:
        """Persist the response."""
        if self.logger is not None:
            self.logger.log_response(self.run_id, step or self.name, response)
