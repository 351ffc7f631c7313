from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass

import structlog

from app.core.clock import DeadlineClock
from app.game.duels.registry import LiveDuelRegistry
from app.game.duels.session import LiveDuelSession
from app.game.duels.types import DuelSeat
from app.game.errors import MatchRequestCancelledError, ParticipantBusyError
from app.game.matchmaking.bots import BotFactory
from app.game.matchmaking.pool import WaitingEntry, WaitingPool
from app.game.participants import ParticipantProfile
from app.game.push import PushChannel
from app.game.questions.subjects import normalize_subject

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class MatchAssignment:
    session: LiveDuelSession
    opponent: ParticipantProfile
    subject: str

    @property
    def against_bot(self) -> bool:
        return self.opponent.is_bot


class MatchmakingCoordinator:
    """Pairs two humans on the same subject, or a human with a bot after a short wait.

    The waiter's future is shielded while waiting so that a timeout never
    cancels a pairing that another caller is completing; after the timeout the
    entry is withdrawn atomically and, if someone claimed it in between, that
    pairing wins over the bot.
    """

    def __init__(
        self,
        *,
        pool: WaitingPool,
        registry: LiveDuelRegistry,
        bots: BotFactory,
        clock: DeadlineClock,
        push: PushChannel,
        bot_fallback_seconds: float,
        rng: random.Random | None = None,
    ) -> None:
        self._pool = pool
        self._registry = registry
        self._bots = bots
        self._clock = clock
        self._push = push
        self._bot_fallback_seconds = max(0.0, float(bot_fallback_seconds))
        self._rng = rng or random.Random()

    async def request_match(self, participant: ParticipantProfile, subject: str) -> MatchAssignment:
        if self._registry.is_busy(participant.participant_id):
            raise ParticipantBusyError(participant.participant_id)
        resolved_subject = normalize_subject(subject, rng=self._rng)
        started_at = self._clock.monotonic()

        entry = WaitingEntry(
            participant=participant,
            subject=resolved_subject,
            enqueued_at=started_at,
            future=asyncio.get_running_loop().create_future(),
        )
        partner = await self._pool.claim_or_enqueue(entry)
        while partner is not None:
            try:
                return await self._pair_with_waiter(participant, partner, resolved_subject, started_at)
            except ParticipantBusyError:
                # A stale waiter that entered a duel elsewhere; try the next one.
                stale_waiter = self._registry.is_busy(partner.participant_id)
                if not stale_waiter or self._registry.is_busy(participant.participant_id):
                    raise
                logger.info(
                    "matchmaking_skipped_busy_waiter",
                    participant_id=participant.participant_id,
                    busy_participant_id=partner.participant_id,
                    subject=resolved_subject,
                )
            partner = await self._pool.claim_or_enqueue(entry)

        await self._push.push(
            participant.participant_id,
            "match:queued",
            {"subject": resolved_subject, "bot_fallback_seconds": self._bot_fallback_seconds},
        )
        logger.info(
            "matchmaking_enqueued",
            participant_id=participant.participant_id,
            subject=resolved_subject,
            waiting_total=self._pool.waiting_count(resolved_subject),
        )
        try:
            return await asyncio.wait_for(asyncio.shield(entry.future), timeout=self._bot_fallback_seconds)
        except asyncio.TimeoutError:
            if not await self._pool.withdraw(entry):
                return await entry.future
        except asyncio.CancelledError:
            await self._pool.withdraw(entry)
            raise

        bot_seat = self._bots.create_seat(participant)
        session = await self._registry.create_session(
            subject=resolved_subject,
            seats=(DuelSeat(profile=participant), bot_seat),
        )
        logger.info(
            "matchmaking_bot_fallback",
            participant_id=participant.participant_id,
            subject=resolved_subject,
            session_id=str(session.session_id),
            bot_accuracy=bot_seat.bot.accuracy if bot_seat.bot is not None else None,
            waited_ms=self._clock.elapsed_ms(started_at),
        )
        return MatchAssignment(session=session, opponent=bot_seat.profile, subject=resolved_subject)

    async def cancel_request(self, participant_id: int) -> bool:
        cancelled = await self._pool.cancel(participant_id)
        if cancelled:
            logger.info("matchmaking_request_cancelled", participant_id=participant_id)
        return cancelled

    async def _pair_with_waiter(
        self,
        participant: ParticipantProfile,
        partner: WaitingEntry,
        subject: str,
        started_at: float,
    ) -> MatchAssignment:
        try:
            session = await self._registry.create_session(
                subject=subject,
                seats=(DuelSeat(profile=partner.participant), DuelSeat(profile=participant)),
            )
        except asyncio.CancelledError:
            partner.future.cancel()
            raise
        except ParticipantBusyError:
            if not partner.future.done():
                partner.future.set_exception(
                    MatchRequestCancelledError("matched elsewhere")
                    if self._registry.is_busy(partner.participant_id)
                    else ParticipantBusyError(participant.participant_id)
                )
            raise
        except Exception as exc:
            if not partner.future.done():
                partner.future.set_exception(exc)
            raise

        if not partner.future.done():
            partner.future.set_result(
                MatchAssignment(session=session, opponent=participant, subject=subject)
            )
        logger.info(
            "matchmaking_paired",
            session_id=str(session.session_id),
            subject=subject,
            participant_ids=[partner.participant_id, participant.participant_id],
            waited_ms=self._clock.elapsed_ms(partner.enqueued_at),
            claim_ms=self._clock.elapsed_ms(started_at),
        )
        return MatchAssignment(session=session, opponent=partner.participant, subject=subject)
