from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class AsyncMatch(Base):
    __tablename__ = "async_matches"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','ACTIVE','COMPLETED','RESIGNED','EXPIRED')",
            name="ck_async_matches_status",
        ),
        CheckConstraint("total_rounds >= 1", name="ck_async_matches_total_rounds_positive"),
        CheckConstraint("current_round >= 1", name="ck_async_matches_current_round_positive"),
        CheckConstraint(
            "initiator_score >= 0 AND opponent_score >= 0",
            name="ck_async_matches_scores_non_negative",
        ),
        CheckConstraint(
            "initiator_user_id <> opponent_user_id",
            name="ck_async_matches_distinct_participants",
        ),
        Index("idx_async_matches_initiator_activity", "initiator_user_id", "last_activity_at"),
        Index("idx_async_matches_opponent_activity", "opponent_user_id", "last_activity_at"),
        Index("idx_async_matches_status_expires", "status", "expires_at"),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    initiator_user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    opponent_user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    subject: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    total_rounds: Mapped[int] = mapped_column(Integer, nullable=False)
    current_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    initiator_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opponent_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winner_user_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=True)
    resigned_by_user_id: Mapped[int | None] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=True,
    )
    initiator_unread: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    opponent_unread: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
