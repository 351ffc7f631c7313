from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def get_by_id_for_update(session: AsyncSession, user_id: int) -> User | None:
        stmt = select(User).where(User.id == user_id).with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_external_id(session: AsyncSession, external_id: str) -> User | None:
        stmt = select(User).where(User.external_id == external_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_username(session: AsyncSession, username: str) -> User | None:
        normalized = username.strip().lstrip("@").lower()
        if not normalized:
            return None
        stmt = select(User).where(func.lower(User.username) == normalized)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_create(
        session: AsyncSession,
        *,
        external_id: str,
        username: str,
        display_name: str | None,
        now_utc: datetime,
    ) -> User:
        stmt = (
            postgresql_insert(User)
            .values(
                external_id=external_id,
                username=username,
                display_name=display_name,
                status="ACTIVE",
                last_seen_at=now_utc,
                updated_at=now_utc,
            )
            .on_conflict_do_nothing(index_elements=[User.external_id])
        )
        await session.execute(stmt)
        user = await UsersRepo.get_by_external_id(session, external_id)
        if user is None:
            raise ValueError(f"user row missing after upsert: {external_id}")
        return user

    @staticmethod
    async def list_top_by_points(session: AsyncSession, *, limit: int) -> list[User]:
        stmt = (
            select(User)
            .where(User.status == "ACTIVE")
            .order_by(User.points.desc(), User.wins.desc(), User.id.asc())
            .limit(max(1, int(limit)))
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def deactivate(session: AsyncSession, user_id: int, now_utc: datetime) -> int:
        stmt = (
            update(User)
            .where(User.id == user_id, User.status == "ACTIVE")
            .values(status="DEACTIVATED", updated_at=now_utc)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
