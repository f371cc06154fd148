"""
POSSync Retry/Backoff Controller.

Per logical request: ATTEMPT -> {SUCCESS, RETRY, RATE_LIMITED, FAILED}.
- Non-retryable errors surface immediately
- Rate-limited errors sleep the advertised delay without spending budget
- Other retryable errors back off exponentially with jitter, capped
- Budget exhausted: the last observed error is raised
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar
import asyncio
import logging
import random

from possync.config import RetrySettings
from possync.errors import POSAdapterError, normalize_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AttemptState(str, Enum):
    ATTEMPT = "attempt"
    SUCCESS = "success"
    RETRY = "retry"
    RATE_LIMITED = "rate_limited"
    FAILED = "failed"


@dataclass
class RetryAttempt:
    """Outcome of one attempt within a logical request."""
    attempt: int
    state: AttemptState
    delay: float = 0.0
    error_code: str | None = None


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_min: float = 0.85
    jitter_max: float = 1.15
    default_rate_limit_delay: float = 1.0
    max_rate_limit_waits: int = 10

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_retries=settings.max_retries,
            base_delay=settings.base_delay,
            max_delay=settings.max_delay,
            jitter_min=settings.jitter_min,
            jitter_max=settings.jitter_max,
            default_rate_limit_delay=settings.default_rate_limit_delay,
            max_rate_limit_waits=settings.max_rate_limit_waits,
        )

    def backoff(self, retry_number: int, jitter: float, base_delay: float | None = None) -> float:
        """min(base * 2^(n-1) * jitter, max_delay) for the n-th retry."""
        base = self.base_delay if base_delay is None else base_delay
        return min(base * (2 ** (retry_number - 1)) * jitter, self.max_delay)


class RetryController:
    """Runs an async operation under a retry budget."""

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        random_unit: Callable[[], float] = random.random,
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._random_unit = random_unit

    def _jitter(self) -> float:
        p = self.policy
        return p.jitter_min + self._random_unit() * (p.jitter_max - p.jitter_min)

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        max_retries: int | None = None,
        base_delay: float | None = None,
        history: list[RetryAttempt] | None = None,
        label: str = "request",
    ) -> T:
        """Invoke ``operation`` until it succeeds or the budget is spent."""
        budget = self.policy.max_retries if max_retries is None else max_retries
        record = history.append if history is not None else (lambda _: None)
        retries_used = 0
        rate_limit_waits = 0
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await operation()
            except POSAdapterError as exc:
                error = exc
            except Exception as exc:
                error = normalize_error(exc)
            else:
                record(RetryAttempt(attempt, AttemptState.SUCCESS))
                return result

            if not error.retryable:
                record(RetryAttempt(attempt, AttemptState.FAILED, error_code=error.error_code))
                raise error

            if error.is_rate_limited and rate_limit_waits < self.policy.max_rate_limit_waits:
                rate_limit_waits += 1
                delay = error.retry_after_seconds
                if delay is None:
                    delay = self.policy.default_rate_limit_delay
                record(RetryAttempt(attempt, AttemptState.RATE_LIMITED, delay, error.error_code))
                logger.warning("%s rate limited, retrying in %.2fs", label, delay)
                await self._sleep(delay)
                continue

            if retries_used >= budget:
                record(RetryAttempt(attempt, AttemptState.FAILED, error_code=error.error_code))
                logger.warning(
                    "%s failed after %d attempt(s): %s", label, attempt, error.error_code
                )
                raise error

            retries_used += 1
            delay = self.policy.backoff(retries_used, self._jitter(), base_delay)
            record(RetryAttempt(attempt, AttemptState.RETRY, delay, error.error_code))
            logger.warning(
                "%s attempt %d failed (%s), retrying in %.2fs",
                label, attempt, error.error_code, delay,
            )
            await self._sleep(delay)
