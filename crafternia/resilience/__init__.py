"""
Admission control and retry primitives guarding the generative backends.
"""

from .rate_limiter import AdmissionLimits, RateLimiter
from .retry import RetryPolicy, is_overloaded, retry_with_backoff, retry_with_model_fallback

__all__ = [
    "AdmissionLimits",
    "RateLimiter",
    "RetryPolicy",
    "is_overloaded",
    "retry_with_backoff",
    "retry_with_model_fallback",
]
