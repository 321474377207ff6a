"""
One-time code bookkeeping.

Each email has at most one live PendingVerification. Issuing a new code replaces
the previous entry outright (fresh expiry, attempt counter back to zero), which
also clears a lockout. Entries leave the store on successful verification, on
expiry (checked lazily by verify() and periodically by sweep()), or when the
attempt limit is reached.

State lives in process memory; it is not shared between workers.
"""

import asyncio
import hmac
import logging
import re
import secrets
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Optional
from clinic.config import get_settings
from clinic.exceptions import (
    InvalidCodeError,
    OtpExpiredError,
    OtpLockedError,
    OtpNotFoundError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def generate_code() -> str:
    """Uniformly random 6-digit code in 100000-999999."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class PendingVerification:
    code: str
    expires_at: float
    attempts: int = 0
    role_hint: str = "doctor"


class OtpStore:
    """In-memory map of email -> PendingVerification."""

    def __init__(self, ttl_seconds: int = 600, max_attempts: int = 3, clock: Callable[[], float] = time.time):
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.clock = clock
        self._pending: dict[str, PendingVerification] = {}

    def put(self, email: str, code: str, role_hint: str = "doctor") -> PendingVerification:
        entry = PendingVerification(
            code=code,
            expires_at=self.clock() + self.ttl_seconds,
            role_hint=role_hint,
        )
        self._pending[email] = entry
        return entry

    def get(self, email: str) -> Optional[PendingVerification]:
        return self._pending.get(email)

    def discard(self, email: str) -> None:
        self._pending.pop(email, None)

    def verify(self, email: str, code: str) -> PendingVerification:
        """
        Check `code` against the live entry for `email`.

        The attempt limit is checked before comparing, so once max_attempts
        failures are recorded the next call is rejected as locked even if the
        code is right. A match consumes the entry.
        """
        entry = self._pending.get(email)
        if entry is None:
            raise OtpNotFoundError()

        if self.clock() > entry.expires_at:
            self.discard(email)
            raise OtpExpiredError()

        if entry.attempts >= self.max_attempts:
            self.discard(email)
            raise OtpLockedError()

        if not hmac.compare_digest(entry.code.encode(), (code or "").encode()):
            entry.attempts += 1
            raise InvalidCodeError()

        self.discard(email)
        return entry

    def sweep(self) -> int:
        """Delete every expired entry. Returns how many were removed."""
        now = self.clock()
        expired = [email for email, entry in self._pending.items() if now > entry.expires_at]
        for email in expired:
            del self._pending[email]
        return len(expired)

    def clear(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)


class RateLimiter:
    """
    Sliding-window request counter keyed by client address.

    Addresses with no request inside the window are dropped, at most once per
    window from hit() and on every sweep().
    """

    def __init__(self, limit: int, window_seconds: int, clock: Callable[[], float] = time.time):
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: dict[str, deque] = {}
        self._next_sweep = 0.0

    def hit(self, key: str) -> None:
        """Record a request from `key`; raise RateLimitedError once over the limit."""
        now = self.clock()
        if now >= self._next_sweep:
            self.sweep()
        hits = self._hits.setdefault(key, deque())
        self._trim(hits, now)
        hits.append(now)
        if len(hits) > self.limit:
            raise RateLimitedError()

    def sweep(self) -> int:
        """Forget addresses whose requests have all left the window. Returns how many."""
        now = self.clock()
        idle = []
        for key, hits in self._hits.items():
            self._trim(hits, now)
            if not hits:
                idle.append(key)
        for key in idle:
            del self._hits[key]
        self._next_sweep = now + self.window_seconds
        return len(idle)

    def _trim(self, hits: deque, now: float) -> None:
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()

    def clear(self) -> None:
        self._hits.clear()
        self._next_sweep = 0.0

    def __len__(self) -> int:
        return len(self._hits)


async def run_sweeper(store: OtpStore, interval_seconds: float, limiter: Optional[RateLimiter] = None) -> None:
    """Background loop: drop expired codes and idle rate-limit entries every `interval_seconds`."""
    while True:
        await asyncio.sleep(interval_seconds)
        removed = store.sweep()
        if removed:
            logger.info("OTP sweep removed %d expired code(s)", removed)
        if limiter is not None:
            limiter.sweep()


settings = get_settings()

otp_store = OtpStore(ttl_seconds=settings.otp_ttl_seconds, max_attempts=settings.otp_max_attempts)
otp_rate_limiter = RateLimiter(limit=settings.otp_rate_limit, window_seconds=settings.otp_rate_window_seconds)
