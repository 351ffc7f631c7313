from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.attempt_records import AttemptRecord


class AttemptRecordsRepo:
    @staticmethod
    async def try_create(
        session: AsyncSession,
        *,
        user_id: int,
        match_id: UUID,
        question_id: str,
        subject: str,
        subtopic: str,
        difficulty: int,
        is_correct: bool,
        response_ms: int,
        mastery_delta: float,
        mastery_after: float,
        answered_at: datetime,
    ) -> int | None:
        stmt = (
            postgresql_insert(AttemptRecord)
            .values(
                user_id=user_id,
                match_id=match_id,
                question_id=question_id,
                subject=subject,
                subtopic=subtopic,
                difficulty=difficulty,
                is_correct=is_correct,
                response_ms=response_ms,
                mastery_delta=mastery_delta,
                mastery_after=mastery_after,
                answered_at=answered_at,
            )
            .on_conflict_do_nothing(constraint="uq_attempt_records_user_match_question")
            .returning(AttemptRecord.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def count_for_key(
        session: AsyncSession,
        *,
        user_id: int,
        match_id: UUID,
        question_id: str,
    ) -> int:
        stmt = select(func.count(AttemptRecord.id)).where(
            AttemptRecord.user_id == user_id,
            AttemptRecord.match_id == match_id,
            AttemptRecord.question_id == question_id,
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
