from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.clock import DeadlineClock
from app.db.session import SessionLocal
from app.economy.progress.service import ProgressLedger
from app.economy.progress.types import MatchKind, ProgressDelta
from app.game.duels.session import LiveDuelSession
from app.game.duels.types import DuelResult
from app.game.push import PushChannel

logger = structlog.get_logger(__name__)


class DuelSettlement:
    def __init__(
        self,
        *,
        push: PushChannel,
        clock: DeadlineClock,
        session_factory: async_sessionmaker[AsyncSession] = SessionLocal,
    ) -> None:
        self._push = push
        self._clock = clock
        self._session_factory = session_factory

    async def __call__(self, session: LiveDuelSession, result: DuelResult) -> None:
        if result.rounds_played == 0 and result.forfeited_by is None:
            logger.info("live_duel_settlement_skipped", session_id=str(result.session_id))
            return
        for seat in session.seats:
            if seat.is_bot:
                continue
            try:
                await self._settle_seat(session, result, seat.participant_id)
            except Exception:
                logger.exception(
                    "live_duel_settlement_failed",
                    session_id=str(result.session_id),
                    participant_id=seat.participant_id,
                )

    async def _settle_seat(self, session: LiveDuelSession, result: DuelResult, participant_id: int) -> None:
        side = result.side_for(participant_id)
        progress: list[ProgressDelta] = []
        async with self._session_factory.begin() as db_session:
            for record in session.rounds:
                if record.question is None:
                    continue
                answer = record.answers.get(participant_id)
                if answer is None:
                    continue
                delta = await ProgressLedger.record_attempt(
                    db_session,
                    participant_id=participant_id,
                    match_id=result.session_id,
                    question_id=record.question.question_id,
                    subject=record.question.subject,
                    subtopic=record.question.topic,
                    difficulty=record.question.difficulty,
                    is_correct=answer.is_correct,
                    response_ms=answer.response_ms,
                    answered_at=answer.answered_at,
                )
                if delta is not None:
                    progress.append(delta)

            settled = await ProgressLedger.settle_match(
                db_session,
                participant_id=participant_id,
                match_id=result.session_id,
                match_kind=MatchKind.LIVE,
                outcome=side.outcome,
                correct_count=side.correct_count,
                now_utc=self._clock.utcnow(),
            )

        if settled is None:
            return
        await self._push.push(
            participant_id,
            "progress:update",
            {
                "match_id": str(result.session_id),
                "outcome": settled.outcome.value,
                "points_delta": settled.points_delta,
                "xp_delta": settled.xp_delta,
                "streak_bonus": settled.streak_bonus,
                "shield_consumed": settled.shield_consumed,
                "shield_earned": settled.shield_earned,
                "points": settled.points_after,
                "level": settled.level_after,
                "current_streak": settled.current_streak,
                "mastery": [
                    {
                        "subject": delta.subject,
                        "subtopic": delta.subtopic,
                        "xp_gained": delta.xp_gained,
                        "before": delta.mastery_before,
                        "after": delta.mastery_after,
                        "accuracy": delta.accuracy,
                        "subject_mastery": delta.subject_mastery,
                    }
                    for delta in progress
                ],
            },
        )
