"""
LiteLLM-powered chat completion helper utilities.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, MutableMapping, Sequence

from litellm import acompletion

from .errors import BackendError, BackendOverloaded

ChatMessage = Mapping[str, Any]

OVERLOAD_STATUS_CODES = frozenset({503})
OVERLOAD_MARKER = "overloaded"


@dataclass
class ChatResult:
    """
    Structured response returned from an LLM chat completion.
    """

    text: str
    raw: Any


CompletionCallable = Callable[..., Awaitable[ChatResult]]


async def call_chat_completion(
    *,
    model: str,
    messages: Sequence[ChatMessage],
    temperature: float | None = None,
    max_tokens: int | None = None,
    api_key: str | None = None,
    json_mode: bool = False,
    **extra_kwargs: Any,
) -> ChatResult:
    """
    Invoke LiteLLM's `acompletion` API and return the consolidated text.

    Provider exceptions are translated into :class:`BackendOverloaded` or
    :class:`BackendError` so the retry layer can classify them.
    """
    payload: MutableMapping[str, Any] = {
        "model": model,
        "messages": list(messages),
    }

    if temperature is not None:
        payload["temperature"] = temperature

    if max_tokens is not None:
        payload["max_tokens"] = max_tokens

    if api_key is not None:
        payload["api_key"] = api_key

    if json_mode:
        payload["response_format"] = {"type": "json_object"}

    payload.update(extra_kwargs)

    try:
        response = await acompletion(**payload)
    except Exception as exc:
        raise translate_backend_exception(exc, backend=model) from exc

    try:
        message = response["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise BackendError("Unexpected LiteLLM response format.", backend=model) from exc

    text = str(message or "").strip()
    return ChatResult(text=text, raw=response)


def extract_status_code(exc: BaseException) -> int | None:
    """Return the HTTP-like status carried by a provider exception, if any."""
    for attribute in ("status_code", "status", "code"):
        value = getattr(exc, attribute, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def translate_backend_exception(exc: BaseException, *, backend: str) -> BackendError:
    """
    Map a provider exception onto the backend error taxonomy.
    """
    if isinstance(exc, BackendError):
        return exc

    status_code = extract_status_code(exc)
    message = str(exc) or type(exc).__name__
    if status_code in OVERLOAD_STATUS_CODES or OVERLOAD_MARKER in message.lower():
        return BackendOverloaded(message, backend=backend, status_code=status_code)
    return BackendError(message, backend=backend, status_code=status_code)
