"""
POSSync Rate Limiter.

Fixed-window admission control keyed by remote host:
- Window resets restore full capacity
- At capacity: queue (sleep until reset) or fail with RATE_LIMIT_EXCEEDED
- Server-advertised x-ratelimit-* / retry-after headers tighten the local view
"""
from __future__ import annotations
from dataclasses import dataclass, field
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Mapping
import asyncio
import logging
import time

from possync.config import RateLimitSettings
from possync.errors import ErrorCode, POSAdapterError

logger = logging.getLogger(__name__)

# Reset header values above this are absolute epoch milliseconds.
EPOCH_MS_THRESHOLD = 1e10
# Values above this (and below the ms threshold) are absolute epoch seconds.
EPOCH_S_THRESHOLD = 1e9


@dataclass(frozen=True)
class RateLimitPolicy:
    """Capacity and window for one host."""
    max_requests: int = 100
    window_seconds: float = 60.0
    queue_requests: bool = True

    @classmethod
    def from_settings(cls, settings: RateLimitSettings) -> "RateLimitPolicy":
        return cls(settings.max_requests, settings.window_seconds, settings.queue_requests)


@dataclass
class RateLimitState:
    """Per-host window state. Created lazily, reset when the window elapses."""
    window_start: float
    request_count: int = 0
    remaining: int = 0
    reset_at: float | None = None  # server-advertised, epoch seconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_start": self.window_start,
            "request_count": self.request_count,
            "remaining": self.remaining,
            "reset_at": self.reset_at,
        }


class RateLimiter:
    """Per-host fixed-window rate limiter owned by one adapter instance."""

    def __init__(
        self,
        policy: RateLimitPolicy | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.default_policy = policy or RateLimitPolicy()
        self._clock = clock
        self._sleep = sleep
        self._policies: dict[str, RateLimitPolicy] = {}
        self._states: dict[str, RateLimitState] = {}

    @classmethod
    def from_settings(cls, settings: RateLimitSettings, **kwargs: Any) -> "RateLimiter":
        return cls(RateLimitPolicy.from_settings(settings), **kwargs)

    # --- Configuration ---

    def configure(self, host: str, policy: RateLimitPolicy) -> None:
        """Override capacity/window for one host (vendor documented limits)."""
        self._policies[host] = policy

    def policy_for(self, host: str) -> RateLimitPolicy:
        return self._policies.get(host, self.default_policy)

    # --- State ---

    def state_for(self, host: str) -> RateLimitState:
        """Return the host's state, rolling the window over if it elapsed."""
        policy = self.policy_for(host)
        now = self._clock()
        state = self._states.get(host)
        if state is None:
            state = RateLimitState(window_start=now, remaining=policy.max_requests)
            self._states[host] = state
            return state

        if now - state.window_start >= policy.window_seconds:
            state.window_start = now
            state.request_count = 0
            if state.reset_at is None or state.reset_at <= now:
                state.reset_at = None
                state.remaining = policy.max_requests
        elif state.reset_at is not None and state.reset_at <= now:
            state.reset_at = None
            state.remaining = policy.max_requests - state.request_count
        return state

    def reset(self, host: str | None = None) -> None:
        """Forget state for one host, or all hosts."""
        if host is None:
            self._states.clear()
        else:
            self._states.pop(host, None)

    def _wait_seconds(self, state: RateLimitState, policy: RateLimitPolicy) -> float:
        now = self._clock()
        if state.request_count >= policy.max_requests:
            return max(0.0, policy.window_seconds - (now - state.window_start))
        if state.remaining <= 0 and state.reset_at is not None and state.reset_at > now:
            return state.reset_at - now
        return 0.0

    def _restart_window(self, state: RateLimitState, policy: RateLimitPolicy) -> None:
        state.window_start = self._clock()
        state.request_count = 0
        state.remaining = policy.max_requests
        state.reset_at = None

    # --- Admission ---

    async def acquire(self, host: str) -> None:
        """Admit one request to ``host``, waiting or raising when at capacity."""
        policy = self.policy_for(host)
        state = self.state_for(host)
        wait = self._wait_seconds(state, policy)

        if wait > 0:
            if not policy.queue_requests:
                raise POSAdapterError(
                    f"Rate limit exceeded for {host}",
                    429,
                    ErrorCode.RATE_LIMIT_EXCEEDED,
                    details={"host": host, "retry_after_seconds": wait},
                    retryable=True,
                )
            logger.warning("Rate limit reached for %s, waiting %.2fs", host, wait)
            await self._sleep(wait)
            self._restart_window(state, policy)

        state.request_count += 1
        state.remaining = max(0, min(state.remaining - 1, policy.max_requests - state.request_count))

    def update_from_headers(self, host: str, headers: Mapping[str, str]) -> None:
        """Merge server-advertised limit headers into the host's state."""
        lowered = {k.lower(): v for k, v in headers.items()}
        state = self.state_for(host)
        now = self._clock()

        remaining = lowered.get("x-ratelimit-remaining") or lowered.get("x-rate-limit-remaining")
        if remaining is not None:
            try:
                state.remaining = max(0, int(float(remaining)))
            except ValueError:
                logger.debug("Ignoring malformed remaining header %r", remaining)

        reset = lowered.get("x-ratelimit-reset") or lowered.get("x-rate-limit-reset")
        if reset is not None:
            reset_at = _parse_reset(reset, now)
            if reset_at is not None:
                state.reset_at = reset_at

        retry_after = lowered.get("retry-after")
        if retry_after is not None:
            delay = parse_retry_after(retry_after, now)
            if delay is not None:
                state.reset_at = now + delay
                state.remaining = 0


def _parse_reset(value: str, now: float) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    if number > EPOCH_MS_THRESHOLD:
        return number / 1000.0
    if number > EPOCH_S_THRESHOLD:
        return number
    return now + number


def parse_retry_after(value: str, now: float | None = None) -> float | None:
    """Seconds to wait from a Retry-After value (delta-seconds or HTTP date)."""
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when is None:
        return None
    current = time.time() if now is None else now
    return max(0.0, when.timestamp() - current)
