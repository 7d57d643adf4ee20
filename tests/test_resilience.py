"""Tests for admission control and the overload retry helpers."""

import asyncio

import pytest

from crafternia.common.errors import BackendError, BackendOverloaded, RateLimitExceeded
from crafternia.resilience import (
    AdmissionLimits,
    RateLimiter,
    RetryPolicy,
    is_overloaded,
    retry_with_backoff,
    retry_with_model_fallback,
)


class FlakyOperation:
    """Fails with the queued errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.attempts = 0

    async def __call__(self):
        self.attempts += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestRateLimiter:

    def test_admits_up_to_the_limit(self, clock):
        limiter = RateLimiter(2, 60, clock=clock)
        assert limiter.can_make_request()
        assert limiter.can_make_request()
        assert not limiter.can_make_request()

    def test_denied_requests_are_not_recorded(self, clock):
        limiter = RateLimiter(1, 60, clock=clock)
        limiter.check()
        for _ in range(3):
            with pytest.raises(RateLimitExceeded):
                limiter.check()
        clock.advance(60)
        assert limiter.remaining_requests() == 1

    def test_wait_time_counts_down_to_the_oldest_entry(self, clock):
        limiter = RateLimiter(2, 60, name="image_generation", clock=clock)
        limiter.check()
        clock.advance(10)
        limiter.check()

        with pytest.raises(RateLimitExceeded) as excinfo:
            limiter.check()

        assert excinfo.value.wait_seconds == pytest.approx(50.0)
        assert excinfo.value.operation == "image_generation"
        assert "Please wait 50 seconds" in str(excinfo.value)

    def test_window_slides(self, clock):
        limiter = RateLimiter(2, 60, clock=clock)
        limiter.check()
        clock.advance(10)
        limiter.check()
        clock.advance(50)
        assert limiter.can_make_request()
        assert not limiter.can_make_request()

    def test_time_until_next_request_is_zero_under_limit(self, clock):
        limiter = RateLimiter(3, 60, clock=clock)
        limiter.check()
        assert limiter.time_until_next_request() == 0.0

    def test_rejects_invalid_configuration(self):
        with pytest.raises(ValueError):
            RateLimiter(0, 60)
        with pytest.raises(ValueError):
            RateLimiter(1, 0)


class TestAdmissionLimits:

    def test_build_uses_configured_limits(self, clock):
        limits = AdmissionLimits.build(image_limit=1, dissection_limit=2, window_seconds=30, clock=clock)
        limits.image_generation.check()
        with pytest.raises(RateLimitExceeded):
            limits.image_generation.check()
        assert limits.dissection.remaining_requests() == 2

    def test_operation_classes_are_independent(self, clock):
        limits = AdmissionLimits.build(image_limit=1, dissection_limit=1, clock=clock)
        limits.image_generation.check()
        limits.dissection.check()
        assert limits.upload.remaining_requests() == 10

    def test_default_limits(self):
        limits = AdmissionLimits()
        assert limits.image_generation.max_requests == 10
        assert limits.dissection.max_requests == 20
        assert limits.image_generation.window_seconds == 3600


class TestIsOverloaded:

    def test_backend_overloaded(self):
        assert is_overloaded(BackendOverloaded("busy"))

    def test_status_503(self):
        error = RuntimeError("service unavailable")
        error.status_code = 503
        assert is_overloaded(error)

    def test_message_marker(self):
        assert is_overloaded(RuntimeError("The model is overloaded. Try later."))

    def test_plain_backend_error(self):
        assert not is_overloaded(BackendError("bad request", status_code=400))


class TestRetryWithBackoff:

    def test_delays_double(self, recording_sleep):
        operation = FlakyOperation([BackendOverloaded("busy"), BackendOverloaded("busy")])
        result = asyncio.run(retry_with_backoff(operation, 3, 2.0, sleep=recording_sleep))
        assert result == "ok"
        assert recording_sleep.delays == [2.0, 4.0]
        assert operation.attempts == 3

    def test_raises_after_retries_exhausted(self, recording_sleep):
        operation = FlakyOperation([BackendOverloaded("busy")] * 5)
        with pytest.raises(BackendOverloaded):
            asyncio.run(retry_with_backoff(operation, 2, 2.0, sleep=recording_sleep))
        assert operation.attempts == 3
        assert recording_sleep.delays == [2.0, 4.0]

    def test_non_overload_error_is_not_retried(self, recording_sleep):
        error = BackendError("invalid prompt", status_code=400)
        operation = FlakyOperation([error])
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(retry_with_backoff(operation, 3, 2.0, sleep=recording_sleep))
        assert excinfo.value is error
        assert operation.attempts == 1
        assert recording_sleep.delays == []

    def test_zero_retries_fails_fast(self, recording_sleep):
        operation = FlakyOperation([BackendOverloaded("busy")])
        with pytest.raises(BackendOverloaded):
            asyncio.run(retry_with_backoff(operation, 0, 2.0, sleep=recording_sleep))
        assert recording_sleep.delays == []


class TestRetryWithModelFallback:

    def test_falls_back_after_exhausting_primary(self, recording_sleep):
        attempts = []

        async def operation(backend):
            attempts.append(backend)
            if backend == "primary":
                raise BackendOverloaded("busy", backend=backend)
            return f"served by {backend}"

        result = asyncio.run(
            retry_with_model_fallback(
                operation, ["primary", "secondary"], retries=1, sleep=recording_sleep
            )
        )
        assert result == "served by secondary"
        assert attempts == ["primary", "primary", "secondary"]
        assert recording_sleep.delays == [2.0]

    def test_non_overload_error_aborts_chain(self, recording_sleep):
        attempts = []
        error = BackendError("unauthorized", backend="primary", status_code=401)

        async def operation(backend):
            attempts.append(backend)
            raise error

        with pytest.raises(BackendError) as excinfo:
            asyncio.run(
                retry_with_model_fallback(operation, ["primary", "secondary"], sleep=recording_sleep)
            )
        assert excinfo.value is error
        assert attempts == ["primary"]

    def test_raises_last_overload_when_all_exhausted(self, recording_sleep):
        async def operation(backend):
            raise BackendOverloaded(f"{backend} busy", backend=backend)

        with pytest.raises(BackendOverloaded, match="secondary busy") as excinfo:
            asyncio.run(
                retry_with_model_fallback(
                    operation, ["primary", "secondary"], retries=0, sleep=recording_sleep
                )
            )
        assert excinfo.value.backend == "secondary"
        assert recording_sleep.delays == []

    def test_requires_a_backend(self):
        async def operation(backend):
            return backend

        with pytest.raises(ValueError):
            asyncio.run(retry_with_model_fallback(operation, []))


class TestRetryPolicy:

    def test_run_uses_policy_settings(self, recording_sleep):
        policy = RetryPolicy(retries=2, initial_delay=0.5, sleep=recording_sleep)
        operation = FlakyOperation([BackendOverloaded("busy")] * 2)
        assert asyncio.run(policy.run(operation)) == "ok"
        assert recording_sleep.delays == [0.5, 1.0]
