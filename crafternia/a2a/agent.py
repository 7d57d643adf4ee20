"""
Abstract agent contract for the capability dispatcher.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from crafternia.common.errors import CrafterniaError

from .types import AgentCard, TaskEnvelope, TaskType


class Agent(ABC):
    """
    Base class for every agent reachable through :class:`AgentOrchestrator`.

    Subclasses expose an :class:`AgentCard` and answer REQUEST envelopes. ``process_task``
    must always return an envelope; failures travel back as ERROR envelopes.
    """

    @property
    @abstractmethod
    def card(self) -> AgentCard:
        """Identity and capabilities of this agent."""

    @abstractmethod
    async def process_task(self, task: TaskEnvelope) -> TaskEnvelope:
        """Handle a REQUEST envelope and return its RESPONSE or ERROR envelope."""

    def create_response(self, task: TaskEnvelope, result: Any) -> TaskEnvelope:
        return task.reply(TaskType.RESPONSE, {"result": result})

    def create_error_response(self, task: TaskEnvelope, error: BaseException) -> TaskEnvelope:
        if isinstance(error, CrafterniaError):
            payload = error.to_payload()
        else:
            payload = {
                "error": str(error) or f"Unknown error in {self.card.name}",
                "error_type": type(error).__name__,
                "details": {},
            }
        return task.reply(TaskType.ERROR, payload)
