"""Test per-host fixed-window rate limiting."""
import pytest

from possync.errors import ErrorCode, POSAdapterError
from possync.integrations import RateLimiter, RateLimitPolicy
from possync.integrations.rate_limiter import parse_retry_after


class FakeClock:
    def __init__(self, now=1_000.0):
        self.now = now
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def make_limiter(max_requests=3, window=60.0, queue=True, now=1_000.0):
    clock = FakeClock(now)
    limiter = RateLimiter(RateLimitPolicy(max_requests, window, queue), clock=clock, sleep=clock.sleep)
    return limiter, clock


@pytest.mark.asyncio
async def test_count_plus_remaining_never_exceeds_capacity():
    limiter, _ = make_limiter(max_requests=5)
    for _ in range(5):
        await limiter.acquire("pos.example.com")
        state = limiter.state_for("pos.example.com")
        assert state.request_count + state.remaining <= 5
    assert limiter.state_for("pos.example.com").remaining == 0


@pytest.mark.asyncio
async def test_queue_mode_waits_for_window():
    limiter, clock = make_limiter(max_requests=2, window=10.0)
    await limiter.acquire("h")
    clock.now += 4
    await limiter.acquire("h")
    await limiter.acquire("h")
    assert clock.sleeps == [pytest.approx(6.0)]
    assert limiter.state_for("h").request_count == 1


@pytest.mark.asyncio
async def test_fail_mode_raises_rate_limit_exceeded():
    limiter, _ = make_limiter(max_requests=1, window=30.0, queue=False)
    await limiter.acquire("h")
    with pytest.raises(POSAdapterError, match="Rate limit exceeded") as info:
        await limiter.acquire("h")
    assert info.value.error_code == ErrorCode.RATE_LIMIT_EXCEEDED.value
    assert info.value.retryable
    assert info.value.retry_after_seconds == pytest.approx(30.0)


@pytest.mark.asyncio
async def test_window_reset_clears_count():
    limiter, clock = make_limiter(max_requests=3, window=60.0)
    await limiter.acquire("h")
    await limiter.acquire("h")
    clock.now += 61
    state = limiter.state_for("h")
    assert state.request_count == 0
    assert state.remaining == 3


@pytest.mark.asyncio
async def test_hosts_are_independent():
    limiter, _ = make_limiter(max_requests=1, queue=False)
    await limiter.acquire("a")
    await limiter.acquire("b")
    with pytest.raises(POSAdapterError):
        await limiter.acquire("a")


@pytest.mark.asyncio
async def test_per_host_override():
    limiter, _ = make_limiter(max_requests=1, queue=False)
    limiter.configure("big", RateLimitPolicy(max_requests=3, window_seconds=60, queue_requests=False))
    for _ in range(3):
        await limiter.acquire("big")
    assert limiter.policy_for("small").max_requests == 1


@pytest.mark.asyncio
async def test_server_remaining_zero_waits_for_server_reset():
    limiter, clock = make_limiter(max_requests=100)
    await limiter.acquire("h")
    limiter.update_from_headers("h", {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "5"})
    await limiter.acquire("h")
    assert clock.sleeps == [pytest.approx(5.0)]


def test_reset_header_formats():
    limiter, clock = make_limiter(now=1_700_000_000.0)
    limiter.update_from_headers("h", {"x-ratelimit-reset": str(int((clock.now + 20) * 1000))})
    assert limiter.state_for("h").reset_at == pytest.approx(clock.now + 20)

    limiter.update_from_headers("h", {"x-ratelimit-reset": "1700000100"})
    assert limiter.state_for("h").reset_at == 1700000100.0

    limiter.update_from_headers("h", {"x-rate-limit-reset": "30"})
    assert limiter.state_for("h").reset_at == pytest.approx(clock.now + 30)


def test_retry_after_header_marks_exhausted():
    limiter, clock = make_limiter()
    limiter.update_from_headers("h", {"Retry-After": "12"})
    state = limiter.state_for("h")
    assert state.remaining == 0
    assert state.reset_at == pytest.approx(clock.now + 12)


def test_reset_forgets_all_hosts():
    limiter, _ = make_limiter()
    limiter.state_for("a")
    limiter.state_for("b")
    limiter.reset()
    assert limiter._states == {}


def test_parse_retry_after():
    assert parse_retry_after("3") == 3.0
    assert parse_retry_after("-4") == 0.0
    assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT", now=1445412470.0) == pytest.approx(10.0)
    assert parse_retry_after("soon") is None
