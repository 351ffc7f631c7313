from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True, slots=True)
class Deadline:
    """A point on the monotonic clock after which a timed operation is over.

    `issued_at_utc` is only for persistence and display; every comparison uses
    the monotonic `expires_at`.
    """

    expires_at: float
    duration_seconds: float
    issued_at_utc: datetime
    _now: Callable[[], float] | None = field(default=None, repr=False, compare=False)

    def remaining(self) -> float:
        now = self._now() if self._now is not None else time.monotonic()
        return max(0.0, self.expires_at - now)

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    @property
    def expires_at_utc(self) -> datetime:
        return self.issued_at_utc + timedelta(seconds=self.duration_seconds)


class DeadlineClock:
    def __init__(self, *, monotonic: Callable[[], float] = time.monotonic) -> None:
        self._monotonic = monotonic

    def monotonic(self) -> float:
        return self._monotonic()

    @staticmethod
    def utcnow() -> datetime:
        return datetime.now(timezone.utc)

    def deadline_after(self, seconds: float) -> Deadline:
        duration = max(0.0, float(seconds))
        return Deadline(
            expires_at=self._monotonic() + duration,
            duration_seconds=duration,
            issued_at_utc=self.utcnow(),
            _now=self._monotonic,
        )

    def elapsed_ms(self, started_at: float) -> int:
        return max(0, int(round((self._monotonic() - started_at) * 1000)))

    async def sleep_until(self, deadline: Deadline) -> None:
        remaining = deadline.remaining()
        if remaining > 0:
            await asyncio.sleep(remaining)
