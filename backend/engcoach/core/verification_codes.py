"""Verification Codes — value objects and pure rules for one-time passwords.

Invariants:
    - Codes are exactly 6 decimal digits, zero-padded, uniformly distributed
    - A code is live iff now < expires_at; at now == expires_at it is expired
    - Targets must contain "@" (email addresses)
    - A submitted code matches only when identical, whitespace included
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta

CODE_DIGITS = 6
DEFAULT_TTL = timedelta(minutes=10)


@dataclass(frozen=True)
class VerificationCode:
    code: str
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def remaining_ms(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds() * 1000))

    def matches(self, submitted: str) -> bool:
        return submitted == self.code


def generate_code(rng: random.Random) -> str:
    """Uniform over 000000–999999."""
    return f"{rng.randrange(10 ** CODE_DIGITS):0{CODE_DIGITS}d}"


def new_code(rng: random.Random, now: datetime, ttl: timedelta = DEFAULT_TTL) -> VerificationCode:
    return VerificationCode(code=generate_code(rng), issued_at=now, expires_at=now + ttl)


def is_valid_target(target: str | None) -> bool:
    return bool(target) and "@" in target
