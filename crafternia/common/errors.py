"""
Error taxonomy shared by the dispatcher, the agents and the backend adapters.
"""

from __future__ import annotations

from typing import Any, Mapping


class CrafterniaError(Exception):
    """Base class for every error raised by Crafternia."""

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = dict(details or {})
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        """Serialize the error into an ERROR envelope payload."""
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "details": dict(self.details),
        }


class RateLimitExceeded(CrafterniaError):
    """Admission denied for an operation class. Never retried automatically."""

    def __init__(self, operation: str, wait_seconds: float) -> None:
        self.operation = operation
        self.wait_seconds = max(0.0, float(wait_seconds))
        super().__init__(
            f"Rate limit exceeded for {operation}. "
            f"Please wait {_ceil_seconds(self.wait_seconds)} seconds.",
            code="rate_limit_exceeded",
            details={"operation": operation, "wait_seconds": self.wait_seconds},
        )


class BackendError(CrafterniaError):
    """A backend rejected the request (bad input, auth, quota). Never retried."""

    def __init__(
        self,
        message: str,
        *,
        backend: str | None = None,
        status_code: int | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.backend = backend
        self.status_code = status_code
        merged = {"backend": backend, "status_code": status_code}
        merged.update(details or {})
        super().__init__(message, code="backend_error", details=merged)


class BackendOverloaded(BackendError):
    """Transient backend overload; retried with backoff, then with fallback."""


class MalformedResponse(CrafterniaError):
    """The backend payload could not be parsed or failed schema validation."""

    def __init__(self, message: str, *, details: Mapping[str, Any] | None = None) -> None:
        super().__init__(message, code="malformed_response", details=details)


class NoAgentForIntent(CrafterniaError):
    """Routing misconfiguration: no registered agent advertises the intent."""

    def __init__(self, intent: str) -> None:
        self.intent = intent
        super().__init__(
            f"No agent registered for intent: {intent}",
            code="no_agent_for_intent",
            details={"intent": intent},
        )


class AgentTaskError(CrafterniaError):
    """An agent answered with an ERROR envelope carrying a non-taxonomy error."""

    def __init__(self, message: str, *, error_type: str | None = None) -> None:
        self.error_type = error_type
        super().__init__(message, code="agent_task_error", details={"error_type": error_type})


def error_from_payload(payload: Mapping[str, Any]) -> CrafterniaError:
    """
    Rebuild a typed error from an ERROR envelope payload, keeping the original message.
    """
    message = str(payload.get("error") or "Unknown agent error")
    error_type = payload.get("error_type")
    details = payload.get("details") or {}

    match error_type:
        case "RateLimitExceeded":
            error: CrafterniaError = RateLimitExceeded(
                str(details.get("operation", "request")),
                float(details.get("wait_seconds", 0.0)),
            )
        case "BackendOverloaded" | "BackendError":
            error_cls = BackendOverloaded if error_type == "BackendOverloaded" else BackendError
            error = error_cls(
                message,
                backend=details.get("backend"),
                status_code=details.get("status_code"),
            )
        case "MalformedResponse":
            error = MalformedResponse(message, details=details)
        case "NoAgentForIntent":
            error = NoAgentForIntent(str(details.get("intent", "")))
        case _:
            return AgentTaskError(message, error_type=error_type)

    error.message = message
    error.args = (message,)
    return error


def _ceil_seconds(value: float) -> int:
    whole = int(value)
    return whole if whole == value else whole + 1
