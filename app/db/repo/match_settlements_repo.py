from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.match_settlements import MatchSettlement


class MatchSettlementsRepo:
    @staticmethod
    async def try_create(
        session: AsyncSession,
        *,
        user_id: int,
        match_id: UUID,
        match_kind: str,
        outcome: str,
        correct_count: int,
        points_delta: int,
        xp_delta: int,
        streak_bonus: int,
        shield_consumed: bool,
    ) -> int | None:
        stmt = (
            postgresql_insert(MatchSettlement)
            .values(
                user_id=user_id,
                match_id=match_id,
                match_kind=match_kind,
                outcome=outcome,
                correct_count=correct_count,
                points_delta=points_delta,
                xp_delta=xp_delta,
                streak_bonus=streak_bonus,
                shield_consumed=shield_consumed,
            )
            .on_conflict_do_nothing(constraint="uq_match_settlements_user_match")
            .returning(MatchSettlement.id)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_user_match(
        session: AsyncSession,
        *,
        user_id: int,
        match_id: UUID,
    ) -> MatchSettlement | None:
        stmt = select(MatchSettlement).where(
            MatchSettlement.user_id == user_id,
            MatchSettlement.match_id == match_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
