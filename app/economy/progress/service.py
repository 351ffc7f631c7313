from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User
from app.db.repo.attempt_records_repo import AttemptRecordsRepo
from app.db.repo.match_settlements_repo import MatchSettlementsRepo
from app.db.repo.subject_mastery_repo import SubjectMasteryRepo
from app.db.repo.users_repo import UsersRepo
from app.economy.progress.rules import (
    accuracy_percent,
    apply_mastery,
    apply_match_outcome,
    attempt_xp,
    subject_mastery,
)
from app.economy.progress.types import (
    MatchKind,
    MatchOutcome,
    MatchResultDelta,
    ProgressDelta,
    StandingSnapshot,
)
from app.game.errors import ParticipantNotFoundError

logger = structlog.get_logger(__name__)


class ProgressLedger:
    @staticmethod
    def _snapshot_from_model(user: User) -> StandingSnapshot:
        return StandingSnapshot(
            points=int(user.points),
            xp=int(user.xp),
            level=int(user.level),
            wins=int(user.wins),
            losses=int(user.losses),
            draws=int(user.draws),
            current_streak=int(user.current_streak),
            best_streak=int(user.best_streak),
            loss_streak=int(user.loss_streak),
            streak_shield=bool(user.streak_shield),
        )

    @staticmethod
    def _apply_snapshot_to_model(user: User, snapshot: StandingSnapshot, now_utc: datetime) -> None:
        user.points = snapshot.points
        user.xp = snapshot.xp
        user.level = snapshot.level
        user.wins = snapshot.wins
        user.losses = snapshot.losses
        user.draws = snapshot.draws
        user.current_streak = snapshot.current_streak
        user.best_streak = snapshot.best_streak
        user.loss_streak = snapshot.loss_streak
        user.streak_shield = snapshot.streak_shield
        user.updated_at = now_utc
        user.version += 1

    @staticmethod
    async def record_attempt(
        session: AsyncSession,
        *,
        participant_id: int,
        match_id: UUID,
        question_id: str,
        subject: str,
        subtopic: str,
        difficulty: int,
        is_correct: bool,
        response_ms: int,
        answered_at: datetime,
    ) -> ProgressDelta | None:
        """Applies one answered question to the participant's mastery.

        Returns None when the (participant, match, question) key was already
        recorded; nothing is mutated in that case. The mastery row lock
        serialises concurrent calls for the same subtopic and the unique
        constraint on the attempt table makes the insert itself atomic.
        """
        mastery_row = await SubjectMasteryRepo.get_or_create_for_update(
            session,
            user_id=participant_id,
            subject=subject,
            subtopic=subtopic,
            now_utc=answered_at,
        )
        mastery_before = float(mastery_row.mastery)
        mastery_after, mastery_delta = apply_mastery(
            mastery_before,
            is_correct=is_correct,
            difficulty=difficulty,
        )

        attempt_id = await AttemptRecordsRepo.try_create(
            session,
            user_id=participant_id,
            match_id=match_id,
            question_id=question_id,
            subject=subject,
            subtopic=subtopic,
            difficulty=max(0, int(difficulty)),
            is_correct=is_correct,
            response_ms=max(0, int(response_ms)),
            mastery_delta=mastery_delta,
            mastery_after=mastery_after,
            answered_at=answered_at,
        )
        if attempt_id is None:
            logger.info(
                "attempt_already_recorded",
                participant_id=participant_id,
                match_id=str(match_id),
                question_id=question_id,
            )
            return None

        mastery_row.attempts += 1
        if is_correct:
            mastery_row.correct += 1
        mastery_row.mastery = mastery_after
        mastery_row.last_seen_at = answered_at
        mastery_row.updated_at = answered_at
        await session.flush()

        subject_values = await SubjectMasteryRepo.list_mastery_values_for_subject(
            session,
            user_id=participant_id,
            subject=subject,
        )
        return ProgressDelta(
            participant_id=participant_id,
            subject=subject,
            subtopic=subtopic,
            is_correct=is_correct,
            xp_gained=attempt_xp(is_correct),
            mastery_before=mastery_before,
            mastery_after=mastery_after,
            mastery_delta=mastery_delta,
            attempts=int(mastery_row.attempts),
            correct=int(mastery_row.correct),
            accuracy=accuracy_percent(attempts=mastery_row.attempts, correct=mastery_row.correct),
            subject_mastery=subject_mastery(subject_values),
        )

    @staticmethod
    async def settle_match(
        session: AsyncSession,
        *,
        participant_id: int,
        match_id: UUID,
        match_kind: MatchKind,
        outcome: MatchOutcome,
        correct_count: int,
        now_utc: datetime,
    ) -> MatchResultDelta | None:
        """Applies a finished match to the participant exactly once."""
        user = await UsersRepo.get_by_id_for_update(session, participant_id)
        if user is None:
            raise ParticipantNotFoundError(participant_id)

        snapshot = ProgressLedger._snapshot_from_model(user)
        updated, deltas = apply_match_outcome(snapshot, outcome=outcome, correct_count=correct_count)

        settlement_id = await MatchSettlementsRepo.try_create(
            session,
            user_id=participant_id,
            match_id=match_id,
            match_kind=match_kind.value,
            outcome=outcome.value,
            correct_count=correct_count,
            points_delta=int(deltas["points_delta"]),
            xp_delta=int(deltas["xp_delta"]),
            streak_bonus=int(deltas["streak_bonus"]),
            shield_consumed=bool(deltas["shield_consumed"]),
        )
        if settlement_id is None:
            logger.info(
                "match_already_settled",
                participant_id=participant_id,
                match_id=str(match_id),
            )
            return None

        ProgressLedger._apply_snapshot_to_model(user, updated, now_utc)
        await session.flush()

        result = MatchResultDelta(
            participant_id=participant_id,
            outcome=outcome,
            correct_count=correct_count,
            points_delta=int(deltas["points_delta"]),
            xp_delta=int(deltas["xp_delta"]),
            streak_bonus=int(deltas["streak_bonus"]),
            shield_consumed=bool(deltas["shield_consumed"]),
            shield_earned=bool(deltas["shield_earned"]),
            points_after=updated.points,
            level_after=updated.level,
            current_streak=updated.current_streak,
        )
        logger.info(
            "match_settled",
            participant_id=participant_id,
            match_id=str(match_id),
            match_kind=match_kind.value,
            outcome=outcome.value,
            points_delta=result.points_delta,
            xp_delta=result.xp_delta,
            shield_consumed=result.shield_consumed,
        )
        return result
