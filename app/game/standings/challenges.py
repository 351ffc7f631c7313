from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import uuid4

import structlog

from app.core.clock import Deadline, DeadlineClock
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.game.duels.registry import LiveDuelRegistry
from app.game.duels.session import LiveDuelSession
from app.game.duels.types import DuelSeat
from app.game.errors import (
    ChallengeExpiredError,
    ChallengeNotFoundError,
    ChallengeTargetOfflineError,
    ParticipantBusyError,
    ParticipantNotFoundError,
    SelfChallengeError,
)
from app.game.matchmaking.pool import WaitingPool
from app.game.participants import ParticipantProfile, profile_from_user
from app.game.questions.subjects import normalize_subject
from app.game.standings.connections import ConnectionHub

logger = structlog.get_logger(__name__)

UsernameLookup = Callable[[str], Awaitable[ParticipantProfile | None]]


async def lookup_participant_by_username(username: str) -> ParticipantProfile | None:
    async with SessionLocal() as session:
        user = await UsersRepo.get_by_username(session, username)
        if user is None or user.status != "ACTIVE":
            return None
        return profile_from_user(user)


@dataclass(frozen=True, slots=True)
class ChallengeInvitation:
    challenge_id: str
    challenger: ParticipantProfile
    target: ParticipantProfile
    subject: str
    created_at: datetime
    deadline: Deadline

    @property
    def expires_at(self) -> datetime:
        return self.deadline.expires_at_utc

    def to_payload(self) -> dict[str, Any]:
        return {
            "challenge_id": self.challenge_id,
            "challenger": self.challenger.to_payload(),
            "target": self.target.to_payload(),
            "subject": self.subject,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }


class ChallengeRegistry:
    def __init__(
        self,
        *,
        hub: ConnectionHub,
        registry: LiveDuelRegistry,
        pool: WaitingPool | None = None,
        clock: DeadlineClock,
        ttl_seconds: float,
        username_lookup: UsernameLookup | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._hub = hub
        self._registry = registry
        self._pool = pool
        self._clock = clock
        self._ttl_seconds = max(0.0, float(ttl_seconds))
        self._username_lookup = username_lookup or lookup_participant_by_username
        self._rng = rng or random.Random()
        self._invitations: dict[str, ChallengeInvitation] = {}
        self._timers: dict[str, asyncio.Task[None]] = {}
        self._lock = asyncio.Lock()

    @property
    def pending_count(self) -> int:
        return len(self._invitations)

    def get(self, challenge_id: str) -> ChallengeInvitation | None:
        return self._invitations.get(challenge_id)

    async def create_challenge(
        self,
        challenger: ParticipantProfile,
        target_username: str,
        subject: str | None = None,
    ) -> ChallengeInvitation:
        resolved_subject = normalize_subject(subject, rng=self._rng)
        target = self._hub.find_by_username(target_username)
        if target is None:
            if await self._username_lookup(target_username) is None:
                raise ParticipantNotFoundError(target_username)
            raise ChallengeTargetOfflineError(target_username)
        if target.participant_id == challenger.participant_id:
            raise SelfChallengeError(challenger.participant_id)
        if self._registry.is_busy(target.participant_id):
            raise ParticipantBusyError(target.participant_id)

        invitation = ChallengeInvitation(
            challenge_id=uuid4().hex,
            challenger=challenger,
            target=target,
            subject=resolved_subject,
            created_at=self._clock.utcnow(),
            deadline=self._clock.deadline_after(self._ttl_seconds),
        )
        async with self._lock:
            self._invitations[invitation.challenge_id] = invitation
            self._timers[invitation.challenge_id] = asyncio.create_task(
                self._expire_after(invitation),
                name=f"challenge-ttl-{invitation.challenge_id}",
            )

        await self._hub.push(target.participant_id, "challenge:received", invitation.to_payload())
        logger.info(
            "challenge_created",
            challenge_id=invitation.challenge_id,
            challenger_id=challenger.participant_id,
            target_id=target.participant_id,
            subject=resolved_subject,
            ttl_seconds=self._ttl_seconds,
        )
        return invitation

    async def respond_to_challenge(
        self,
        challenge_id: str,
        participant_id: int,
        *,
        accept: bool,
    ) -> LiveDuelSession | None:
        expired = False
        async with self._lock:
            invitation = self._invitations.get(challenge_id)
            if invitation is None or invitation.target.participant_id != participant_id:
                raise ChallengeNotFoundError(challenge_id)
            del self._invitations[challenge_id]
            timer = self._timers.pop(challenge_id, None)
            expired = invitation.deadline.expired
        if timer is not None:
            timer.cancel()

        if expired:
            await self._notify_expired(invitation)
            raise ChallengeExpiredError(challenge_id)

        if not accept:
            await self._hub.push(
                invitation.challenger.participant_id,
                "challenge:declined",
                {"challenge_id": challenge_id, "target": invitation.target.to_payload()},
            )
            logger.info("challenge_declined", challenge_id=challenge_id, target_id=participant_id)
            return None

        challenger_id = invitation.challenger.participant_id
        if not self._hub.is_connected(challenger_id):
            logger.info("challenge_challenger_offline", challenge_id=challenge_id, challenger_id=challenger_id)
            raise ChallengeTargetOfflineError(invitation.challenger.username)

        try:
            session = await self._registry.create_session(
                subject=invitation.subject,
                seats=(DuelSeat(profile=invitation.challenger), DuelSeat(profile=invitation.target)),
            )
        except ParticipantBusyError:
            await self._hub.push(
                challenger_id,
                "challenge:declined",
                {"challenge_id": challenge_id, "target": invitation.target.to_payload(), "reason": "busy"},
            )
            logger.info("challenge_accept_failed_busy", challenge_id=challenge_id, target_id=participant_id)
            raise

        # Neither side may keep a matchmaking entry once the duel starts.
        if self._pool is not None:
            await self._pool.cancel(challenger_id)
            await self._pool.cancel(participant_id)
        logger.info(
            "challenge_accepted",
            challenge_id=challenge_id,
            session_id=str(session.session_id),
            participant_ids=[invitation.challenger.participant_id, invitation.target.participant_id],
        )
        return session

    async def withdraw_participant(self, participant_id: int) -> int:
        async with self._lock:
            withdrawn = [
                invitation
                for invitation in self._invitations.values()
                if participant_id in (invitation.challenger.participant_id, invitation.target.participant_id)
            ]
            timers: list[asyncio.Task[None]] = []
            for invitation in withdrawn:
                del self._invitations[invitation.challenge_id]
                timer = self._timers.pop(invitation.challenge_id, None)
                if timer is not None:
                    timers.append(timer)
        for timer in timers:
            timer.cancel()

        for invitation in withdrawn:
            other_id = (
                invitation.target.participant_id
                if invitation.challenger.participant_id == participant_id
                else invitation.challenger.participant_id
            )
            await self._hub.push(
                other_id,
                "challenge:withdrawn",
                {"challenge_id": invitation.challenge_id, "reason": "disconnected"},
            )
            logger.info(
                "challenge_withdrawn",
                challenge_id=invitation.challenge_id,
                participant_id=participant_id,
                notified_id=other_id,
            )
        return len(withdrawn)

    async def shutdown(self) -> None:
        async with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
            self._invitations.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    async def _expire_after(self, invitation: ChallengeInvitation) -> None:
        await self._clock.sleep_until(invitation.deadline)
        async with self._lock:
            if self._invitations.get(invitation.challenge_id) is not invitation:
                return
            del self._invitations[invitation.challenge_id]
            self._timers.pop(invitation.challenge_id, None)
        await self._notify_expired(invitation)

    async def _notify_expired(self, invitation: ChallengeInvitation) -> None:
        payload = {"challenge_id": invitation.challenge_id, "reason": "expired"}
        await self._hub.push(invitation.challenger.participant_id, "challenge:expired", payload)
        await self._hub.push(invitation.target.participant_id, "challenge:expired", payload)
        logger.info(
            "challenge_expired",
            challenge_id=invitation.challenge_id,
            challenger_id=invitation.challenger.participant_id,
            target_id=invitation.target.participant_id,
        )
