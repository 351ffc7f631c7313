from __future__ import annotations

import asyncio
import random
from typing import Any

import pytest

from app.core.clock import DeadlineClock
from app.game.duels.types import DuelSeat
from app.game.errors import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeTargetOfflineError,
    MatchRequestCancelledError,
    ParticipantBusyError,
    ParticipantNotFoundError,
    SelfChallengeError,
    UnknownSubjectError,
)
from app.game.matchmaking.pool import WaitingEntry, WaitingPool
from app.game.participants import ParticipantProfile
from app.game.standings.challenges import ChallengeRegistry
from app.game.standings.connections import ConnectionHub
from tests.game.duel_fixtures import profile


class _Channel:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, data: Any) -> None:
        self.sent.append(data)

    def types(self) -> list[str]:
        return [message["type"] for message in self.sent]


class _FakeSession:
    def __init__(self, subject: str, seats: tuple[DuelSeat, DuelSeat]) -> None:
        self.session_id = "session-1"
        self.subject = subject
        self.seats = seats


class _FakeDuelRegistry:
    def __init__(self, busy: set[int] | None = None) -> None:
        self.busy = busy or set()
        self.created: list[_FakeSession] = []

    def is_busy(self, participant_id: int) -> bool:
        return participant_id in self.busy

    async def create_session(self, *, subject: str, seats: tuple[DuelSeat, DuelSeat]) -> _FakeSession:
        for seat in seats:
            if seat.participant_id in self.busy:
                raise ParticipantBusyError(seat.participant_id)
        session = _FakeSession(subject, seats)
        self.created.append(session)
        return session


async def _no_such_user(username: str) -> ParticipantProfile | None:
    return None


async def _known_user(username: str) -> ParticipantProfile | None:
    return profile(50, username)


async def _setup(
    *,
    ttl_seconds: float = 5.0,
    busy: set[int] | None = None,
    lookup=_no_such_user,
    pool: WaitingPool | None = None,
):
    hub = ConnectionHub()
    alice_channel, bob_channel = _Channel(), _Channel()
    alice, bob = profile(1, "alice"), profile(2, "Bob")
    await hub.register(alice, alice_channel)
    await hub.register(bob, bob_channel)
    duels = _FakeDuelRegistry(busy)
    challenges = ChallengeRegistry(
        hub=hub,
        registry=duels,  # type: ignore[arg-type]
        pool=pool,
        clock=DeadlineClock(),
        ttl_seconds=ttl_seconds,
        username_lookup=lookup,
        rng=random.Random(4),
    )
    return challenges, duels, alice, bob, alice_channel, bob_channel, hub


@pytest.mark.asyncio
async def test_accept_starts_live_duel_between_both_sides() -> None:
    challenges, duels, alice, bob, _, bob_channel, _ = await _setup()
    try:
        invitation = await challenges.create_challenge(alice, "@bob", "evidence")
        assert bob_channel.types() == ["challenge:received"]
        assert bob_channel.sent[0]["payload"]["subject"] == "Evidence"

        session = await challenges.respond_to_challenge(invitation.challenge_id, bob.participant_id, accept=True)

        assert session is duels.created[0]
        assert [seat.participant_id for seat in session.seats] == [1, 2]
        assert challenges.pending_count == 0
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_decline_notifies_challenger() -> None:
    challenges, duels, alice, bob, alice_channel, _, _ = await _setup()
    try:
        invitation = await challenges.create_challenge(alice, "bob")

        assert await challenges.respond_to_challenge(invitation.challenge_id, 2, accept=False) is None
        assert alice_channel.types() == ["challenge:declined"]
        assert duels.created == []
        with pytest.raises(ChallengeNotFoundError):
            await challenges.respond_to_challenge(invitation.challenge_id, 2, accept=True)
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_only_target_may_respond() -> None:
    challenges, _, alice, _, _, _, _ = await _setup()
    try:
        invitation = await challenges.create_challenge(alice, "bob")
        with pytest.raises(ChallengeNotFoundError):
            await challenges.respond_to_challenge(invitation.challenge_id, 1, accept=True)
        assert challenges.get(invitation.challenge_id) is invitation
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_unanswered_challenge_expires_for_both_sides() -> None:
    challenges, duels, alice, _, alice_channel, bob_channel, _ = await _setup(ttl_seconds=0.05)
    try:
        invitation = await challenges.create_challenge(alice, "bob", "Torts")

        async def _wait_for_expiry() -> None:
            while "challenge:expired" not in alice_channel.types():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_wait_for_expiry(), timeout=2.0)

        assert challenges.pending_count == 0
        assert bob_channel.types() == ["challenge:received", "challenge:expired"]
        assert alice_channel.sent[-1]["payload"] == {
            "challenge_id": invitation.challenge_id,
            "reason": "expired",
        }
        with pytest.raises(ChallengeNotFoundError):
            await challenges.respond_to_challenge(invitation.challenge_id, 2, accept=True)
        assert duels.created == []
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_response_after_deadline_but_before_timer_is_expired() -> None:
    challenges, duels, alice, _, _, _, _ = await _setup(ttl_seconds=0.0)
    try:
        invitation = await challenges.create_challenge(alice, "bob")
        with pytest.raises(ChallengeExpiredError):
            await challenges.respond_to_challenge(invitation.challenge_id, 2, accept=True)
        assert duels.created == []
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_create_challenge_validation() -> None:
    challenges, _, alice, _, _, _, _ = await _setup(busy={2})
    try:
        with pytest.raises(ParticipantBusyError):
            await challenges.create_challenge(alice, "bob")
        with pytest.raises(SelfChallengeError):
            await challenges.create_challenge(alice, "ALICE")
        with pytest.raises(ParticipantNotFoundError):
            await challenges.create_challenge(alice, "nobody")
        with pytest.raises(UnknownSubjectError):
            await challenges.create_challenge(alice, "bob", "Astrology")
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_known_but_disconnected_target_is_offline() -> None:
    challenges, _, alice, _, _, _, _ = await _setup(lookup=_known_user)
    try:
        with pytest.raises(ChallengeTargetOfflineError):
            await challenges.create_challenge(alice, "carol")
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_disconnect_withdraws_sent_and_received_invitations() -> None:
    challenges, duels, alice, bob, alice_channel, bob_channel, hub = await _setup()
    carol_channel = _Channel()
    await hub.register(profile(3, "carol"), carol_channel)
    try:
        sent = await challenges.create_challenge(alice, "bob")
        received = await challenges.create_challenge(profile(3, "carol"), "alice")

        assert await challenges.withdraw_participant(alice.participant_id) == 2
        await hub.unregister(alice.participant_id, alice_channel)

        assert challenges.pending_count == 0
        assert bob_channel.sent[-1] == {
            "type": "challenge:withdrawn",
            "payload": {"challenge_id": sent.challenge_id, "reason": "disconnected"},
        }
        assert carol_channel.sent[-1]["type"] == "challenge:withdrawn"
        assert carol_channel.sent[-1]["payload"]["challenge_id"] == received.challenge_id
        with pytest.raises(ChallengeNotFoundError):
            await challenges.respond_to_challenge(sent.challenge_id, bob.participant_id, accept=True)
        assert duels.created == []
        assert await challenges.withdraw_participant(alice.participant_id) == 0
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_accept_after_challenger_left_starts_nothing() -> None:
    challenges, duels, alice, bob, alice_channel, _, hub = await _setup()
    try:
        invitation = await challenges.create_challenge(alice, "bob")
        await hub.unregister(alice.participant_id, alice_channel)

        with pytest.raises(ChallengeTargetOfflineError):
            await challenges.respond_to_challenge(invitation.challenge_id, bob.participant_id, accept=True)
        assert duels.created == []
        assert challenges.pending_count == 0
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_busy_accept_tells_the_challenger() -> None:
    challenges, duels, alice, bob, alice_channel, _, _ = await _setup()
    try:
        invitation = await challenges.create_challenge(alice, "bob")
        duels.busy.add(alice.participant_id)

        with pytest.raises(ParticipantBusyError):
            await challenges.respond_to_challenge(invitation.challenge_id, bob.participant_id, accept=True)
        assert alice_channel.types()[-1] == "challenge:declined"
        assert alice_channel.sent[-1]["payload"]["reason"] == "busy"
    finally:
        await challenges.shutdown()


@pytest.mark.asyncio
async def test_accepted_challenge_withdraws_target_from_waiting_pool() -> None:
    pool = WaitingPool()
    challenges, duels, alice, bob, _, _, _ = await _setup(pool=pool)
    entry = WaitingEntry(
        participant=bob,
        subject="Torts",
        enqueued_at=0.0,
        future=asyncio.get_running_loop().create_future(),
    )
    assert await pool.claim_or_enqueue(entry) is None
    try:
        invitation = await challenges.create_challenge(alice, "bob", "Torts")
        await challenges.respond_to_challenge(invitation.challenge_id, bob.participant_id, accept=True)

        assert len(duels.created) == 1
        assert pool.is_waiting(bob.participant_id) is False
        with pytest.raises(MatchRequestCancelledError):
            await entry.future
    finally:
        await challenges.shutdown()
