"""
Agent-to-agent task contracts and the capability dispatcher.
"""

from .agent import Agent
from .orchestrator import AgentOrchestrator
from .types import AgentCard, Capability, TaskEnvelope, TaskType

__all__ = [
    "Agent",
    "AgentCard",
    "AgentOrchestrator",
    "Capability",
    "TaskEnvelope",
    "TaskType",
]
