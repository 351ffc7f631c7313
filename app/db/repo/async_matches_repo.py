from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.async_match_rounds import AsyncMatchRound
from app.db.models.async_matches import AsyncMatch

OPEN_STATUSES = ("PENDING", "ACTIVE")


class AsyncMatchesRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, match_id: UUID) -> AsyncMatch | None:
        return await session.get(AsyncMatch, match_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, match_id: UUID) -> AsyncMatch | None:
        stmt = (
            select(AsyncMatch)
            .where(AsyncMatch.id == match_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def create(session: AsyncSession, *, match: AsyncMatch) -> AsyncMatch:
        session.add(match)
        await session.flush()
        return match

    @staticmethod
    async def find_open_between(
        session: AsyncSession,
        *,
        first_user_id: int,
        second_user_id: int,
    ) -> AsyncMatch | None:
        stmt = (
            select(AsyncMatch)
            .where(
                AsyncMatch.status.in_(OPEN_STATUSES),
                or_(
                    and_(
                        AsyncMatch.initiator_user_id == first_user_id,
                        AsyncMatch.opponent_user_id == second_user_id,
                    ),
                    and_(
                        AsyncMatch.initiator_user_id == second_user_id,
                        AsyncMatch.opponent_user_id == first_user_id,
                    ),
                ),
            )
            .order_by(AsyncMatch.created_at.desc())
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        *,
        user_id: int,
        limit: int,
    ) -> list[AsyncMatch]:
        resolved_limit = max(1, int(limit))
        stmt = (
            select(AsyncMatch)
            .where(
                or_(
                    AsyncMatch.initiator_user_id == user_id,
                    AsyncMatch.opponent_user_id == user_id,
                )
            )
            .order_by(AsyncMatch.last_activity_at.desc(), AsyncMatch.created_at.desc())
            .limit(resolved_limit)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def list_due_for_expire_for_update(
        session: AsyncSession,
        *,
        now_utc: datetime,
        limit: int,
    ) -> list[AsyncMatch]:
        resolved_limit = max(1, int(limit))
        stmt = (
            select(AsyncMatch)
            .where(
                AsyncMatch.status.in_(OPEN_STATUSES),
                AsyncMatch.expires_at <= now_utc,
            )
            .order_by(AsyncMatch.expires_at.asc())
            .limit(resolved_limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def add_round(session: AsyncSession, *, match_round: AsyncMatchRound) -> AsyncMatchRound:
        session.add(match_round)
        await session.flush()
        return match_round

    @staticmethod
    async def get_round(
        session: AsyncSession,
        *,
        match_id: UUID,
        round_no: int,
    ) -> AsyncMatchRound | None:
        return await session.get(AsyncMatchRound, (match_id, round_no))

    @staticmethod
    async def list_rounds(session: AsyncSession, *, match_id: UUID) -> list[AsyncMatchRound]:
        stmt = (
            select(AsyncMatchRound)
            .where(AsyncMatchRound.match_id == match_id)
            .order_by(AsyncMatchRound.round_no.asc())
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())
