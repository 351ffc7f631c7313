from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import structlog

from app.core.clock import DeadlineClock
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.game.participants import ParticipantProfile
from app.game.standings.connections import ConnectionHub

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class StandingRow:
    participant_id: int
    username: str
    display_name: str | None
    points: int
    level: int
    wins: int
    losses: int


@dataclass(frozen=True, slots=True)
class StandingEntry:
    rank: int
    row: StandingRow

    def to_payload(self) -> dict[str, Any]:
        return {
            "rank": self.rank,
            "participant_id": self.row.participant_id,
            "username": self.row.username,
            "display_name": self.row.display_name or self.row.username,
            "points": self.row.points,
            "level": self.row.level,
            "wins": self.row.wins,
            "losses": self.row.losses,
        }


@dataclass(frozen=True, slots=True)
class StandingsSnapshot:
    entries: tuple[StandingEntry, ...] = ()
    updated_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "entries": [entry.to_payload() for entry in self.entries],
            "updated_at": self.updated_at.isoformat() if self.updated_at is not None else None,
        }

    def rank_of(self, participant_id: int) -> int | None:
        for entry in self.entries:
            if entry.row.participant_id == participant_id:
                return entry.rank
        return None


StandingsLoader = Callable[[int], Awaitable[Sequence[StandingRow]]]


async def load_top_standings(limit: int) -> list[StandingRow]:
    async with SessionLocal() as session:
        users = await UsersRepo.list_top_by_points(session, limit=limit)
    return [
        StandingRow(
            participant_id=int(user.id),
            username=user.username,
            display_name=user.display_name,
            points=int(user.points),
            level=int(user.level),
            wins=int(user.wins),
            losses=int(user.losses),
        )
        for user in users
    ]


def rank_rows(rows: Sequence[StandingRow], *, top_n: int) -> tuple[StandingEntry, ...]:
    ordered = sorted(rows, key=lambda row: (-row.points, -row.wins, row.participant_id))
    return tuple(StandingEntry(rank=index, row=row) for index, row in enumerate(ordered[:top_n], start=1))


class StandingsCache:
    def __init__(self, *, loader: StandingsLoader, clock: DeadlineClock, top_n: int) -> None:
        self._loader = loader
        self._clock = clock
        self._top_n = max(1, int(top_n))
        self._snapshot = StandingsSnapshot()
        self._write_lock = asyncio.Lock()

    @property
    def snapshot(self) -> StandingsSnapshot:
        return self._snapshot

    async def refresh(self) -> StandingsSnapshot:
        async with self._write_lock:
            rows = await self._loader(self._top_n)
            self._snapshot = StandingsSnapshot(
                entries=rank_rows(rows, top_n=self._top_n),
                updated_at=self._clock.utcnow(),
            )
            return self._snapshot


class StandingsBroadcaster:
    def __init__(self, *, cache: StandingsCache, hub: ConnectionHub, refresh_seconds: float) -> None:
        self._cache = cache
        self._hub = hub
        self._refresh_seconds = max(0.05, float(refresh_seconds))
        self._task: asyncio.Task[None] | None = None

    @property
    def cache(self) -> StandingsCache:
        return self._cache

    async def refresh_and_broadcast(self) -> int:
        snapshot = await self._cache.refresh()
        return await self._hub.broadcast("standings:update", snapshot.to_payload())

    async def send_current(self, participant: ParticipantProfile) -> bool:
        return await self._hub.push(
            participant.participant_id,
            "standings:update",
            self._cache.snapshot.to_payload(),
        )

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(), name="standings-broadcaster")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            try:
                delivered = await self.refresh_and_broadcast()
                logger.debug("standings_broadcast", delivered=delivered)
            except Exception:
                logger.exception("standings_refresh_failed")
            await asyncio.sleep(self._refresh_seconds)


__all__ = [
    "StandingEntry",
    "StandingRow",
    "StandingsBroadcaster",
    "StandingsCache",
    "StandingsSnapshot",
    "load_top_standings",
    "rank_rows",
]
