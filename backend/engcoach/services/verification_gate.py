"""Verification Gate — one-time codes that unlock the researcher views.

Invariants:
    - At most one live code per target; issue() overwrites
    - A code is removed on successful verify, on expiry detection, or by the sweep
    - A mismatch leaves the code in place (retry allowed until expiry)
    - Delivery failure rolls back the stored code before DeliveryFailedError surfaces
    - issue/verify/status for one target are serialized by that target's lock
    - The code value is never returned to callers or logged

Design Decisions:
    - In-memory dict owned by this object (built in the lifespan, injected into routes);
      single-process deployment, codes do not survive restart
    - Clock and RNG injected: tests drive expiry without sleeping
"""

import asyncio
import logging
import random
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from engcoach.core.errors import (
    ChannelUnavailableError,
    CodeExpiredError,
    CodeMismatchError,
    CodeNotFoundError,
    DeliveryFailedError,
    InvalidTargetError,
)
from engcoach.core.repository_protocols import CodeDeliveryChannel
from engcoach.core.verification_codes import (
    DEFAULT_TTL, VerificationCode, is_valid_target, new_code,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationGate:
    """Issues and checks short-lived verification codes keyed by target."""

    def __init__(
        self,
        channel: CodeDeliveryChannel,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
    ):
        self.channel = channel
        self.ttl = ttl
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._codes: dict[str, VerificationCode] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, target: str) -> asyncio.Lock:
        lock = self._locks.get(target)
        if lock is None:
            lock = self._locks[target] = asyncio.Lock()
        return lock

    async def issue(self, target: str | None) -> int:
        """Generate, store and deliver a code. Returns its lifetime in milliseconds."""
        if not is_valid_target(target):
            raise InvalidTargetError()
        if not self.channel.is_configured:
            raise ChannelUnavailableError()

        async with self._lock_for(target):
            code = new_code(self._rng, self._clock(), self.ttl)
            self._codes[target] = code
            try:
                await self.channel.send_code(target, code.code)
            except DeliveryFailedError:
                self._codes.pop(target, None)
                raise
            except Exception as e:
                self._codes.pop(target, None)
                raise DeliveryFailedError(type(e).__name__) from e

        self.sweep()
        logger.info("Verification code issued")
        return int(self.ttl.total_seconds() * 1000)

    async def verify(self, target: str | None, submitted: str | None) -> None:
        """Consume the code on match; raise the typed failure otherwise."""
        if not is_valid_target(target) or not submitted:
            raise InvalidTargetError("Email and OTP are required")

        async with self._lock_for(target):
            code = self._codes.get(target)
            if code is None:
                raise CodeNotFoundError()
            if code.is_expired(self._clock()):
                del self._codes[target]
                raise CodeExpiredError()
            if not code.matches(submitted):
                raise CodeMismatchError()
            del self._codes[target]
        logger.info("Verification code accepted")

    async def status(self, target: str | None) -> int | None:
        """Remaining lifetime in ms of the live code, or None if there is none."""
        if not target:
            raise InvalidTargetError("Email parameter is required")

        async with self._lock_for(target):
            code = self._codes.get(target)
            if code is None:
                return None
            now = self._clock()
            if code.is_expired(now):
                del self._codes[target]
                return None
            return code.remaining_ms(now)

    def sweep(self) -> int:
        """Delete every expired code and every idle lock whose target holds no code.
        Returns how many codes were removed."""
        now = self._clock()
        expired = [t for t, c in self._codes.items() if c.is_expired(now)]
        for target in expired:
            del self._codes[target]
        idle = [
            t for t, lock in self._locks.items()
            if t not in self._codes and not lock.locked()
        ]
        for target in idle:
            del self._locks[target]
        if expired:
            logger.info(f"Swept {len(expired)} expired verification code(s)")
        return len(expired)

    def __len__(self) -> int:
        return len(self._codes)


async def run_sweeper(gate: VerificationGate, interval_seconds: float) -> None:
    """Background loop: sweep expired codes until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        gate.sweep()
