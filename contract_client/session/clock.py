"""
Token Clock
===========

Decodes an access token's expiry and computes the remaining lifetime.

GUARANTEES:
- Pure query: no timers, no side effects
- Every time read goes through an injectable Clock
- Tests drive expiry with ManualClock instead of sleeping

The surrounding UI polls remaining() on a fixed interval (15s by default);
this module never schedules anything itself.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
import time

import jwt

from ..contracts.base import TokenExpired, TokenMalformed


# =============================================================================
# WALL CLOCKS
# =============================================================================

class Clock:
    """Source of the current time in epoch milliseconds."""

    def now_ms(self) -> int:
        raise NotImplementedError


class SystemClock(Clock):
    """Reads real system time."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


@dataclass
class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used for simulated time in tests and replays.
    """
    current_ms: int = 0

    def now_ms(self) -> int:
        return self.current_ms

    def advance(self, delta: timedelta) -> int:
        self.current_ms += int(delta.total_seconds() * 1000)
        return self.current_ms

    def set(self, epoch_ms: int) -> None:
        self.current_ms = epoch_ms


# =============================================================================
# TOKEN CLOCK
# =============================================================================

class TokenClock:
    """
    Expiry arithmetic for JWT access tokens.

    The signature is NOT verified here; the server does that on every
    request. Only the `exp` claim is read.
    """

    def __init__(self, clock: Clock = None):
        self._clock = clock or SystemClock()

    @property
    def clock(self) -> Clock:
        return self._clock

    def expires_at_ms(self, token: str) -> int:
        """Decode the `exp` claim of token into epoch milliseconds."""
        if not token or not isinstance(token, str):
            raise TokenMalformed("Access token is empty")
        try:
            payload = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            raise TokenMalformed(f"Cannot decode access token: {e}") from e

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenMalformed("Access token has no numeric exp claim")
        return int(exp * 1000)

    def remaining(self, token: str) -> timedelta:
        """
        Time left before token expires.

        Raises:
            TokenMalformed: payload cannot be decoded
            TokenExpired: expiry is at or before now
        """
        diff_ms = self.expires_at_ms(token) - self._clock.now_ms()
        if diff_ms <= 0:
            raise TokenExpired(f"Access token expired {-diff_ms} ms ago")
        return timedelta(milliseconds=diff_ms)

    def is_expired(self, token: str) -> bool:
        """True for expired tokens; malformed tokens still raise."""
        try:
            self.remaining(token)
        except TokenExpired:
            return True
        return False


def describe_remaining(delta: timedelta) -> str:
    """Countdown text for the session header, e.g. '12m 5s'."""
    total_seconds = max(int(delta.total_seconds()), 0)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}m {seconds}s"
