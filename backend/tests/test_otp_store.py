import asyncio
from contextlib import suppress

import pytest

from clinic.exceptions import (
    InvalidCodeError,
    OtpExpiredError,
    OtpLockedError,
    OtpNotFoundError,
    RateLimitedError,
)
from clinic.services.otp_service import OtpStore, RateLimiter, generate_code, is_valid_email, run_sweeper

EMAIL = "doc@example.com"


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return OtpStore(ttl_seconds=600, max_attempts=3, clock=clock)


def test_generated_codes_are_six_digits():
    for _ in range(500):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()
        assert 100000 <= int(code) <= 999999


@pytest.mark.parametrize("email", ["doc@example.com", "a.b+c@clinic.co.in", "x@y.z"])
def test_valid_emails(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("email", ["", None, "doc", "doc@example", "@example.com", "doc @example.com", "doc@exa mple.com"])
def test_invalid_emails(email):
    assert not is_valid_email(email)


def test_correct_code_verifies_exactly_once(store):
    store.put(EMAIL, "123456")

    entry = store.verify(EMAIL, "123456")

    assert entry.code == "123456"
    with pytest.raises(OtpNotFoundError):
        store.verify(EMAIL, "123456")


def test_unknown_email_is_not_found(store):
    with pytest.raises(OtpNotFoundError):
        store.verify("nobody@example.com", "123456")


def test_reissue_invalidates_previous_code(store):
    store.put(EMAIL, "111111")
    store.put(EMAIL, "222222")

    with pytest.raises(InvalidCodeError):
        store.verify(EMAIL, "111111")
    assert store.verify(EMAIL, "222222").code == "222222"


def test_three_failures_lock_out_the_correct_code(store):
    store.put(EMAIL, "123456")
    for wrong in ("000000", "111111", "222222"):
        with pytest.raises(InvalidCodeError):
            store.verify(EMAIL, wrong)
    assert store.get(EMAIL).attempts == 3

    with pytest.raises(OtpLockedError):
        store.verify(EMAIL, "123456")
    assert store.get(EMAIL) is None


def test_two_failures_still_allow_success(store):
    store.put(EMAIL, "123456")
    for wrong in ("000000", "111111"):
        with pytest.raises(InvalidCodeError):
            store.verify(EMAIL, wrong)

    assert store.verify(EMAIL, "123456").attempts == 2


def test_reissue_clears_lockout(store):
    store.put(EMAIL, "123456")
    for _ in range(3):
        with pytest.raises(InvalidCodeError):
            store.verify(EMAIL, "000000")

    store.put(EMAIL, "654321")

    assert store.get(EMAIL).attempts == 0
    assert store.verify(EMAIL, "654321").code == "654321"


def test_expired_code_fails_even_when_correct(store, clock):
    store.put(EMAIL, "123456")
    clock.advance(601)

    with pytest.raises(OtpExpiredError):
        store.verify(EMAIL, "123456")
    assert store.get(EMAIL) is None


def test_code_is_valid_up_to_the_expiry_instant(store, clock):
    store.put(EMAIL, "123456")
    clock.advance(600)

    assert store.verify(EMAIL, "123456").code == "123456"


def test_sweep_removes_only_expired_entries(store, clock):
    store.put("old@example.com", "111111")
    clock.advance(400)
    store.put("new@example.com", "222222")
    clock.advance(300)

    assert store.sweep() == 1
    assert store.get("old@example.com") is None
    assert store.get("new@example.com") is not None


def test_background_sweeper_clears_expired_codes(store, clock):
    store.put(EMAIL, "123456")
    clock.advance(601)

    async def scenario():
        task = asyncio.create_task(run_sweeper(store, 0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert len(store) == 0


def test_rate_limiter_allows_limit_then_rejects(clock):
    limiter = RateLimiter(limit=5, window_seconds=900, clock=clock)
    for _ in range(5):
        limiter.hit("10.0.0.1")

    with pytest.raises(RateLimitedError):
        limiter.hit("10.0.0.1")
    # Other clients are unaffected
    limiter.hit("10.0.0.2")


def test_rate_limiter_window_slides(clock):
    limiter = RateLimiter(limit=5, window_seconds=900, clock=clock)
    for _ in range(5):
        limiter.hit("10.0.0.1")
    clock.advance(900)

    limiter.hit("10.0.0.1")


def test_rate_limiter_forgets_idle_addresses(clock):
    limiter = RateLimiter(limit=5, window_seconds=900, clock=clock)
    for n in range(1000):
        limiter.hit(f"10.0.{n // 256}.{n % 256}")
    assert len(limiter) == 1000
    clock.advance(901)

    limiter.hit("10.9.9.9")

    assert len(limiter) == 1


def test_rate_limiter_sweep_keeps_active_addresses(clock):
    limiter = RateLimiter(limit=5, window_seconds=900, clock=clock)
    limiter.hit("10.0.0.1")
    clock.advance(600)
    limiter.hit("10.0.0.2")
    clock.advance(400)

    assert limiter.sweep() == 1
    assert len(limiter) == 1
    # The surviving address still counts its earlier request
    for _ in range(4):
        limiter.hit("10.0.0.2")
    with pytest.raises(RateLimitedError):
        limiter.hit("10.0.0.2")


def test_background_sweeper_clears_idle_rate_limit_entries(store, clock):
    limiter = RateLimiter(limit=5, window_seconds=900, clock=clock)
    limiter.hit("10.0.0.1")
    clock.advance(901)

    async def scenario():
        task = asyncio.create_task(run_sweeper(store, 0.01, limiter))
        await asyncio.sleep(0.1)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert len(limiter) == 0
