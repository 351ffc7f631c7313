from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class MatchSettlement(Base):
    __tablename__ = "match_settlements"
    __table_args__ = (
        UniqueConstraint("user_id", "match_id", name="uq_match_settlements_user_match"),
        CheckConstraint("match_kind IN ('LIVE','ASYNC')", name="ck_match_settlements_match_kind"),
        CheckConstraint("outcome IN ('WIN','LOSS','DRAW')", name="ck_match_settlements_outcome"),
        Index("idx_match_settlements_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    match_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False)
    match_kind: Mapped[str] = mapped_column(String(8), nullable=False)
    outcome: Mapped[str] = mapped_column(String(8), nullable=False)
    correct_count: Mapped[int] = mapped_column(Integer, nullable=False)
    points_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    xp_delta: Mapped[int] = mapped_column(Integer, nullable=False)
    streak_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    shield_consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
