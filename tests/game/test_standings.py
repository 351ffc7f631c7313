from __future__ import annotations

import asyncio
from typing import Any

import pytest

from app.core.clock import DeadlineClock
from app.game.standings.connections import ConnectionHub
from app.game.standings.standings import (
    StandingRow,
    StandingsBroadcaster,
    StandingsCache,
    rank_rows,
)
from tests.game.duel_fixtures import profile


class _Channel:
    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[Any] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)


def _row(participant_id: int, points: int, wins: int = 0) -> StandingRow:
    return StandingRow(
        participant_id=participant_id,
        username=f"player{participant_id}",
        display_name=None,
        points=points,
        level=1 + points // 100,
        wins=wins,
        losses=0,
    )


def test_rank_rows_orders_by_points_then_wins_then_id() -> None:
    entries = rank_rows(
        [_row(3, 200, wins=1), _row(1, 200, wins=4), _row(2, 350), _row(4, 200, wins=1)],
        top_n=3,
    )

    assert [(entry.rank, entry.row.participant_id) for entry in entries] == [(1, 2), (2, 1), (3, 3)]


@pytest.mark.asyncio
async def test_hub_push_and_broadcast() -> None:
    hub = ConnectionHub()
    first, second = _Channel(), _Channel()
    await hub.register(profile(1, "Alice"), first)
    await hub.register(profile(2, "bob"), second)

    assert await hub.push(1, "pong", {}) is True
    assert await hub.push(99, "pong", {}) is False
    delivered = await hub.broadcast("standings:update", {"entries": []})

    assert delivered == 2
    assert first.sent[0] == {"type": "pong", "payload": {}}
    assert second.sent == [{"type": "standings:update", "payload": {"entries": []}}]
    assert hub.find_by_username("@ALICE").participant_id == 1
    assert hub.find_by_username("carol") is None


@pytest.mark.asyncio
async def test_hub_push_failure_is_reported_not_raised() -> None:
    hub = ConnectionHub()
    await hub.register(profile(1), _Channel(fail=True))

    assert await hub.push(1, "pong", {}) is False
    assert hub.is_connected(1) is True


@pytest.mark.asyncio
async def test_hub_unregister_ignores_stale_channel() -> None:
    hub = ConnectionHub()
    old_channel, new_channel = _Channel(), _Channel()
    await hub.register(profile(1), old_channel)
    replaced = await hub.register(profile(1), new_channel)

    assert replaced is not None and replaced.channel is old_channel
    assert await hub.unregister(1, old_channel) is False
    assert hub.is_connected(1) is True
    assert await hub.unregister(1, new_channel) is True
    assert hub.connected_count == 0


@pytest.mark.asyncio
async def test_hub_update_profile_replaces_cached_profile() -> None:
    hub = ConnectionHub()
    await hub.register(profile(1, points=10), _Channel())

    await hub.update_profile(profile(1, points=250))

    assert hub.profile(1).points == 250


@pytest.mark.asyncio
async def test_cache_refresh_replaces_snapshot() -> None:
    loads: list[int] = []

    async def _loader(limit: int):
        loads.append(limit)
        return [_row(1, 100), _row(2, 300)]

    cache = StandingsCache(loader=_loader, clock=DeadlineClock(), top_n=5)
    empty = cache.snapshot
    refreshed = await cache.refresh()

    assert empty.entries == ()
    assert cache.snapshot is refreshed
    assert refreshed.rank_of(2) == 1
    assert refreshed.rank_of(42) is None
    assert refreshed.to_payload()["entries"][0]["display_name"] == "player2"
    assert loads == [5]


@pytest.mark.asyncio
async def test_broadcaster_pushes_to_connected_and_survives_loader_errors() -> None:
    calls = 0

    async def _loader(limit: int):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("database down")
        return [_row(1, 100)]

    hub = ConnectionHub()
    channel = _Channel()
    await hub.register(profile(1), channel)
    broadcaster = StandingsBroadcaster(
        cache=StandingsCache(loader=_loader, clock=DeadlineClock(), top_n=5),
        hub=hub,
        refresh_seconds=0.05,
    )

    broadcaster.start()
    try:
        async def _wait_for_update() -> None:
            while not channel.sent:
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_wait_for_update(), timeout=2.0)
    finally:
        await broadcaster.stop()

    assert channel.sent[0]["type"] == "standings:update"
    assert channel.sent[0]["payload"]["entries"][0]["participant_id"] == 1
    assert calls >= 2


@pytest.mark.asyncio
async def test_send_current_uses_cached_snapshot() -> None:
    async def _loader(limit: int):
        return [_row(3, 500)]

    hub = ConnectionHub()
    channel = _Channel()
    await hub.register(profile(3), channel)
    cache = StandingsCache(loader=_loader, clock=DeadlineClock(), top_n=5)
    broadcaster = StandingsBroadcaster(cache=cache, hub=hub, refresh_seconds=10)
    await cache.refresh()

    assert await broadcaster.send_current(profile(3)) is True
    assert channel.sent[0]["payload"]["entries"][0]["rank"] == 1
