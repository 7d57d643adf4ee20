"""
Backoff and backend-fallback helpers for transient overload failures.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence, TypeVar

from crafternia.common.errors import BackendOverloaded

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]

OVERLOAD_STATUS = 503


def is_overloaded(exc: BaseException) -> bool:
    """
    Return True when ``exc`` signals a transient backend overload.
    """
    if isinstance(exc, BackendOverloaded):
        return True
    for attribute in ("status_code", "status", "code"):
        value = getattr(exc, attribute, None)
        if value == OVERLOAD_STATUS or value == str(OVERLOAD_STATUS):
            return True
    return "overloaded" in str(exc).lower()


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    retries: int = 3,
    initial_delay: float = 2.0,
    *,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Await ``operation``, retrying overload failures up to ``retries`` times.

    Delays start at ``initial_delay`` seconds and double after every retry. Any error that
    is not an overload propagates on the first occurrence, unchanged.
    """
    attempt = 0
    delay = initial_delay
    while True:
        try:
            return await operation()
        except Exception as exc:
            if attempt >= retries or not is_overloaded(exc):
                raise
            attempt += 1
            logger.warning(
                "Backend overloaded; retry %d/%d in %.1fs (%s).", attempt, retries, delay, exc
            )
            await sleep(delay)
            delay *= 2


async def retry_with_model_fallback(
    operation: Callable[[str], Awaitable[T]],
    backends: Sequence[str],
    *,
    retries: int = 3,
    initial_delay: float = 2.0,
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run ``operation(backend)`` against each backend in order until one succeeds.

    A backend is abandoned only after its overload retries are exhausted. Non-overload
    errors abort the whole chain. When every backend is exhausted the last overload error
    is raised.
    """
    if not backends:
        raise ValueError("At least one backend is required for model fallback.")

    for index, backend in enumerate(backends):
        try:
            return await retry_with_backoff(
                lambda: operation(backend),
                retries,
                initial_delay,
                sleep=sleep,
            )
        except Exception as exc:
            if not is_overloaded(exc) or index + 1 == len(backends):
                raise
            logger.warning(
                "Backend %s exhausted its retries; falling back to %s.",
                backend,
                backends[index + 1],
            )
    raise RuntimeError("Model fallback ended without a result.")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Injectable bundle of retry settings shared by the backend services.
    """

    retries: int = 3
    initial_delay: float = 2.0
    sleep: Sleep = field(default=asyncio.sleep, repr=False, compare=False)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await retry_with_backoff(
            operation, self.retries, self.initial_delay, sleep=self.sleep
        )

    async def run_with_fallback(
        self,
        operation: Callable[[str], Awaitable[T]],
        backends: Sequence[str],
    ) -> T:
        return await retry_with_model_fallback(
            operation,
            backends,
            retries=self.retries,
            initial_delay=self.initial_delay,
            sleep=self.sleep,
        )
