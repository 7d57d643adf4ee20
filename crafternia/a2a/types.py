"""
Message and capability contracts shared by agents and the dispatcher.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class TaskType(str, Enum):
    REQUEST = "REQUEST"
    RESPONSE = "RESPONSE"
    ERROR = "ERROR"
    STATUS = "STATUS"


@dataclass(frozen=True)
class Capability:
    """A single intent an agent can serve."""

    intent: str
    description: str
    input_schema: Mapping[str, str] | None = None


@dataclass(frozen=True)
class AgentCard:
    """Static description of an agent and the intents it advertises."""

    name: str
    version: str
    description: str
    capabilities: tuple[Capability, ...] = ()

    @property
    def intents(self) -> tuple[str, ...]:
        return tuple(capability.intent for capability in self.capabilities)


def new_task_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class TaskEnvelope:
    """
    A message exchanged between the dispatcher and an agent.

    Every REQUEST is answered by exactly one RESPONSE or ERROR carrying the same ``task_id``.
    """

    task_id: str
    sender: str
    recipient: str
    type: TaskType
    payload: Mapping[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def request(
        cls,
        *,
        sender: str,
        recipient: str,
        payload: Mapping[str, Any],
    ) -> "TaskEnvelope":
        return cls(
            task_id=new_task_id(),
            sender=sender,
            recipient=recipient,
            type=TaskType.REQUEST,
            payload=dict(payload),
        )

    @property
    def intent(self) -> str | None:
        value = self.payload.get("intent")
        return str(value) if value is not None else None

    def reply(self, type: TaskType, payload: Mapping[str, Any]) -> "TaskEnvelope":
        """Build the answer to this envelope, swapping sender and recipient."""
        return TaskEnvelope(
            task_id=self.task_id,
            sender=self.recipient,
            recipient=self.sender,
            type=type,
            payload=dict(payload),
        )
