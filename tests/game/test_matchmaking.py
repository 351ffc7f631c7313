from __future__ import annotations

import asyncio
import random

import pytest

from app.core.clock import DeadlineClock
from app.game.duels.registry import LiveDuelRegistry
from app.game.duels.types import DuelSeat
from app.game.errors import MatchRequestCancelledError, ParticipantBusyError, UnknownSubjectError
from app.game.matchmaking.bots import BotFactory, BotPolicy
from app.game.matchmaking.pool import WaitingPool
from app.game.matchmaking.service import MatchmakingCoordinator
from tests.game.duel_fixtures import RecordingPush, ScriptedSupplier, profile


def _build(*, bot_fallback_seconds: float = 5.0, settlement=None):
    push = RecordingPush()
    clock = DeadlineClock()
    registry = LiveDuelRegistry(
        supplier=ScriptedSupplier(),
        clock=clock,
        push=push,
        total_rounds=3,
        round_seconds=5.0,
        settlement=settlement,
        rng=random.Random(3),
    )
    pool = WaitingPool()
    coordinator = MatchmakingCoordinator(
        pool=pool,
        registry=registry,
        bots=BotFactory(policy=BotPolicy(), rng=random.Random(5)),
        clock=clock,
        push=push,
        bot_fallback_seconds=bot_fallback_seconds,
        rng=random.Random(7),
    )
    return coordinator, pool, registry, push


async def _wait_until_waiting(pool: WaitingPool, participant_id: int) -> None:
    async def _poll() -> None:
        while not pool.is_waiting(participant_id):
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=2.0)


@pytest.mark.asyncio
async def test_two_humans_on_same_subject_are_paired() -> None:
    coordinator, pool, registry, push = _build()
    try:
        waiting = asyncio.create_task(coordinator.request_match(profile(1), "torts"))
        await _wait_until_waiting(pool, 1)

        second = await coordinator.request_match(profile(2), "Torts")
        first = await asyncio.wait_for(waiting, timeout=2.0)

        assert first.session is second.session
        assert first.opponent.participant_id == 2
        assert second.opponent.participant_id == 1
        assert first.against_bot is False
        assert first.subject == "Torts"
        assert pool.waiting_count() == 0
        assert registry.is_busy(1) and registry.is_busy(2)
        assert push.of_type("match:queued", 1)[0]["subject"] == "Torts"
        assert len(push.of_type("duel:start")) == 2
    finally:
        await registry.shutdown()


@pytest.mark.asyncio
async def test_different_subjects_do_not_pair() -> None:
    coordinator, pool, registry, _ = _build(bot_fallback_seconds=5.0)
    try:
        first = asyncio.create_task(coordinator.request_match(profile(1), "Torts"))
        second = asyncio.create_task(coordinator.request_match(profile(2), "Evidence"))
        await _wait_until_waiting(pool, 1)
        await _wait_until_waiting(pool, 2)

        assert pool.waiting_count("Torts") == 1
        assert pool.waiting_count("Evidence") == 1

        first.cancel()
        second.cancel()
        await asyncio.gather(first, second, return_exceptions=True)
        assert pool.waiting_count() == 0
    finally:
        await registry.shutdown()


@pytest.mark.asyncio
async def test_lonely_waiter_gets_a_bot_after_fallback() -> None:
    coordinator, pool, registry, _ = _build(bot_fallback_seconds=0.02)
    try:
        assignment = await asyncio.wait_for(
            coordinator.request_match(profile(1, points=950), "Contracts"),
            timeout=2.0,
        )

        assert assignment.against_bot is True
        assert assignment.opponent.participant_id < 0
        seat = assignment.session.opponent_of(1)
        assert seat.bot is not None
        assert 0.35 <= seat.bot.accuracy <= 0.9
        assert not pool.is_waiting(1)
    finally:
        await registry.shutdown()


@pytest.mark.asyncio
async def test_cancel_request_fails_the_waiter() -> None:
    coordinator, pool, registry, _ = _build()
    try:
        waiting = asyncio.create_task(coordinator.request_match(profile(1), "Torts"))
        await _wait_until_waiting(pool, 1)

        assert await coordinator.cancel_request(1) is True
        assert await coordinator.cancel_request(1) is False
        with pytest.raises(MatchRequestCancelledError):
            await asyncio.wait_for(waiting, timeout=2.0)
    finally:
        await registry.shutdown()


@pytest.mark.asyncio
async def test_busy_participant_cannot_queue() -> None:
    coordinator, _, registry, _ = _build()
    try:
        await registry.create_session(
            subject="Torts",
            seats=(DuelSeat(profile=profile(1)), DuelSeat(profile=profile(2))),
        )
        with pytest.raises(ParticipantBusyError):
            await coordinator.request_match(profile(1), "Torts")
        with pytest.raises(ParticipantBusyError):
            await registry.create_session(
                subject="Torts",
                seats=(DuelSeat(profile=profile(2)), DuelSeat(profile=profile(3))),
            )
    finally:
        await registry.shutdown()


@pytest.mark.asyncio
async def test_unknown_subject_is_rejected() -> None:
    coordinator, _, registry, _ = _build()
    with pytest.raises(UnknownSubjectError):
        await coordinator.request_match(profile(1), "Astrophysics")
    await registry.shutdown()


@pytest.mark.asyncio
async def test_registry_releases_participants_and_settles_when_finished() -> None:
    settled: list[tuple[object, object]] = []

    async def _settlement(session, result) -> None:
        settled.append((session.session_id, result.winner_id))

    _, _, registry, _ = _build(settlement=_settlement)
    session = await registry.create_session(
        subject="Torts",
        seats=(DuelSeat(profile=profile(1)), DuelSeat(profile=profile(2))),
    )
    assert registry.session_for_participant(1) is session

    assert await registry.forfeit_participant(2) is True
    await asyncio.wait_for(session.wait_finished(), timeout=2.0)

    assert settled == [(session.session_id, 1)]
    assert registry.is_busy(1) is False
    assert registry.active_count == 0
    assert await registry.forfeit_participant(1) is False


@pytest.mark.asyncio
async def test_waiter_already_in_a_duel_is_skipped_not_blamed_on_caller() -> None:
    coordinator, pool, registry, push = _build(bot_fallback_seconds=0.3)
    try:
        stale = asyncio.create_task(coordinator.request_match(profile(1), "Torts"))
        await _wait_until_waiting(pool, 1)
        await registry.create_session(
            subject="Torts",
            seats=(DuelSeat(profile=profile(3)), DuelSeat(profile=profile(1))),
        )

        assignment = await asyncio.wait_for(coordinator.request_match(profile(2), "Torts"), timeout=2.0)

        assert assignment.against_bot is True
        assert push.of_type("match:queued", 2)
        with pytest.raises(MatchRequestCancelledError):
            await asyncio.wait_for(stale, timeout=2.0)
        assert pool.waiting_count() == 0
    finally:
        await registry.shutdown()
