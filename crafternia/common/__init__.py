"""
Common utilities shared across Crafternia modules.
"""

from .errors import (
    AgentTaskError,
    BackendError,
    BackendOverloaded,
    CrafterniaError,
    MalformedResponse,
    NoAgentForIntent,
    RateLimitExceeded,
    error_from_payload,
)
from .llm import ChatResult, CompletionCallable, call_chat_completion, translate_backend_exception
from .settings import CrafterniaSettings

__all__ = [
    "AgentTaskError",
    "BackendError",
    "BackendOverloaded",
    "ChatResult",
    "CompletionCallable",
    "CrafterniaError",
    "CrafterniaSettings",
    "MalformedResponse",
    "NoAgentForIntent",
    "RateLimitExceeded",
    "call_chat_completion",
    "error_from_payload",
    "translate_backend_exception",
]
