import pytest
from types import SimpleNamespace

from matura.api.rate_limit import SlidingWindowRateLimiter, client_key
from matura.core.errors import RateLimitError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limit_per_window():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(3, 60, clock=clock)
    assert [limiter.hit("a") for _ in range(3)] == [2, 1, 0]
    with pytest.raises(RateLimitError) as exc:
        limiter.hit("a")
    assert exc.value.retry_after == 60
    # other clients are unaffected
    assert limiter.hit("b") == 2


def test_window_slides():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, 60, clock=clock)
    limiter.hit("a")
    clock.now += 30
    limiter.hit("a")
    clock.now += 20
    with pytest.raises(RateLimitError) as exc:
        limiter.hit("a")
    assert exc.value.retry_after == 10

    clock.now += 10
    assert limiter.hit("a") == 0


def test_reset_clears_buckets():
    limiter = SlidingWindowRateLimiter(1, 60, clock=FakeClock())
    limiter.hit("a")
    limiter.reset()
    assert limiter.hit("a") == 0


def test_client_key_ignores_forwarded_for_unless_trusted():
    forwarded = SimpleNamespace(headers={"x-forwarded-for": "10.0.0.1, 172.16.0.1"}, client=SimpleNamespace(host="127.0.0.1"))
    anonymous = SimpleNamespace(headers={}, client=None)
    assert client_key(forwarded) == "127.0.0.1"
    assert client_key(forwarded, trust_forwarded_for=True) == "10.0.0.1"
    assert client_key(anonymous) == "unknown"


def test_idle_clients_are_forgotten():
    clock = FakeClock()
    limiter = SlidingWindowRateLimiter(2, 60, clock=clock)
    for n in range(20):
        limiter.hit(f"10.0.0.{n}")
    assert limiter.tracked_clients() == 20

    clock.now += 61
    limiter.hit("10.0.0.1")
    assert limiter.tracked_clients() == 1
