"""
Sliding-window admission control for expensive backend operations.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable

from crafternia.common.errors import RateLimitExceeded

logger = logging.getLogger(__name__)

Clock = Callable[[], float]

IMAGE_GENERATION = "image_generation"
DISSECTION = "dissection"
UPLOAD = "upload"


class RateLimiter:
    """
    Admit at most ``max_requests`` operations inside any trailing ``window_seconds`` window.

    The limiter never blocks or queues: callers ask for admission and receive an answer
    immediately. Only admitted requests are recorded.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        *,
        name: str = "request",
        clock: Clock = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1.")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive.")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self.name = name
        self._clock = clock
        self._timestamps: list[float] = []

    def _prune(self, now: float) -> None:
        window_start = now - self.window_seconds
        self._timestamps = [stamp for stamp in self._timestamps if stamp > window_start]

    def can_make_request(self) -> bool:
        """Record and admit a request when the window has room; otherwise deny."""
        now = self._clock()
        self._prune(now)
        if len(self._timestamps) >= self.max_requests:
            return False
        self._timestamps.append(now)
        return True

    def time_until_next_request(self) -> float:
        """Seconds until the oldest recorded request leaves the window; 0 when under the limit."""
        if len(self._timestamps) < self.max_requests:
            return 0.0
        window_start = self._clock() - self.window_seconds
        return max(0.0, self._timestamps[0] - window_start)

    def remaining_requests(self) -> int:
        self._prune(self._clock())
        return max(0, self.max_requests - len(self._timestamps))

    def check(self, operation: str | None = None) -> None:
        """
        Admit a request or raise :class:`RateLimitExceeded` carrying the wait in seconds.
        """
        if self.can_make_request():
            return
        wait_seconds = self.time_until_next_request()
        label = operation or self.name
        logger.warning("Admission denied for %s; next slot in %.1fs.", label, wait_seconds)
        raise RateLimitExceeded(label, wait_seconds)


@dataclass
class AdmissionLimits:
    """
    Per-operation-class limiters, built once at process start and shared by reference.
    """

    image_generation: RateLimiter = field(
        default_factory=lambda: RateLimiter(10, 3600, name=IMAGE_GENERATION)
    )
    dissection: RateLimiter = field(
        default_factory=lambda: RateLimiter(20, 3600, name=DISSECTION)
    )
    upload: RateLimiter = field(default_factory=lambda: RateLimiter(10, 60, name=UPLOAD))

    @classmethod
    def build(
        cls,
        *,
        image_limit: int = 10,
        dissection_limit: int = 20,
        window_seconds: float = 3600,
        clock: Clock = time.monotonic,
    ) -> "AdmissionLimits":
        return cls(
            image_generation=RateLimiter(
                image_limit, window_seconds, name=IMAGE_GENERATION, clock=clock
            ),
            dissection=RateLimiter(
                dissection_limit, window_seconds, name=DISSECTION, clock=clock
            ),
            upload=RateLimiter(10, 60, name=UPLOAD, clock=clock),
        )
