"""
Capability dispatcher routing intents to registered agents.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from crafternia.common.errors import CrafterniaError, NoAgentForIntent, error_from_payload

from .agent import Agent
from .types import AgentCard, TaskEnvelope, TaskType

logger = logging.getLogger(__name__)

ORCHESTRATOR_NAME = "Orchestrator"


class AgentOrchestrator:
    """
    Maps every advertised intent to the agent that registered it last and runs tasks.
    """

    def __init__(self) -> None:
        self._agents: dict[str, Agent] = {}
        self._capability_map: dict[str, str] = {}

    def register_agent(self, agent: Agent) -> None:
        card = agent.card
        if card.name in self._agents:
            logger.warning("Agent %s is already registered. Overwriting.", card.name)
            # intents the replaced agent advertised are not carried over to the new one
            self._capability_map = {
                intent: owner for intent, owner in self._capability_map.items() if owner != card.name
            }
        self._agents[card.name] = agent

        for capability in card.capabilities:
            previous = self._capability_map.get(capability.intent)
            if previous is not None:
                logger.warning(
                    "Capability intent '%s' is already handled by %s. Overwriting with %s.",
                    capability.intent,
                    previous,
                    card.name,
                )
            self._capability_map[capability.intent] = card.name

        logger.debug("Registered agent %s with intents: %s", card.name, ", ".join(card.intents))

    def agent_for(self, intent: str) -> Agent:
        agent_name = self._capability_map.get(intent)
        if agent_name is None:
            raise NoAgentForIntent(intent)
        return self._agents[agent_name]

    async def dispatch(self, intent: str, payload: Mapping[str, Any] | None = None) -> Any:
        """
        Send ``payload`` to the agent serving ``intent`` and return the unwrapped result.

        ERROR envelopes are re-raised as typed :class:`CrafterniaError` instances carrying the
        agent's original message.
        """
        agent = self.agent_for(intent)
        task = TaskEnvelope.request(
            sender=ORCHESTRATOR_NAME,
            recipient=agent.card.name,
            payload={**dict(payload or {}), "intent": intent},
        )
        logger.info("Dispatching %s to %s (task %s).", intent, agent.card.name, task.task_id)

        response = await agent.process_task(task)

        if response.task_id != task.task_id:
            raise CrafterniaError(
                f"Agent {agent.card.name} answered task {task.task_id} with {response.task_id}."
            )
        if response.type is TaskType.ERROR:
            raise error_from_payload(response.payload)
        return response.payload.get("result")

    def get_registry(self) -> list[AgentCard]:
        return [agent.card for agent in self._agents.values()]
