from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.subject_mastery import SubjectMastery


class SubjectMasteryRepo:
    @staticmethod
    async def get_or_create_for_update(
        session: AsyncSession,
        *,
        user_id: int,
        subject: str,
        subtopic: str,
        now_utc: datetime,
    ) -> SubjectMastery:
        insert_stmt = (
            postgresql_insert(SubjectMastery)
            .values(
                user_id=user_id,
                subject=subject,
                subtopic=subtopic,
                attempts=0,
                correct=0,
                mastery=0.0,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(
                index_elements=[
                    SubjectMastery.user_id,
                    SubjectMastery.subject,
                    SubjectMastery.subtopic,
                ]
            )
        )
        await session.execute(insert_stmt)
        stmt = (
            select(SubjectMastery)
            .where(
                SubjectMastery.user_id == user_id,
                SubjectMastery.subject == subject,
                SubjectMastery.subtopic == subtopic,
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    @staticmethod
    async def list_mastery_values_for_subject(
        session: AsyncSession,
        *,
        user_id: int,
        subject: str,
    ) -> list[float]:
        stmt = select(SubjectMastery.mastery).where(
            SubjectMastery.user_id == user_id,
            SubjectMastery.subject == subject,
        )
        result = await session.execute(stmt)
        return [float(value) for value in result.scalars().all()]

    @staticmethod
    async def list_for_user(session: AsyncSession, *, user_id: int) -> list[SubjectMastery]:
        stmt = (
            select(SubjectMastery)
            .where(SubjectMastery.user_id == user_id)
            .order_by(SubjectMastery.subject.asc(), SubjectMastery.subtopic.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
