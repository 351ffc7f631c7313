from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "status IN ('ACTIVE','DEACTIVATED')",
            name="ck_users_status",
        ),
        CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
        CheckConstraint("level >= 1", name="ck_users_level_positive"),
        CheckConstraint("current_streak >= 0", name="ck_users_current_streak_non_negative"),
        CheckConstraint("loss_streak >= 0", name="ck_users_loss_streak_non_negative"),
        UniqueConstraint("external_id", name="uq_users_external_id"),
        Index("idx_users_points", "points", "id"),
        Index("idx_users_created_at", "created_at"),
        Index("idx_users_last_seen", "last_seen_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    external_id: Mapped[str] = mapped_column(String(128), nullable=False)
    username: Mapped[str] = mapped_column(Text, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    level: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"), default=1)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    draws: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    current_streak: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        server_default=text("0"),
        default=0,
    )
    best_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    loss_streak: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    streak_shield: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="ACTIVE")
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )
    last_seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


Index("uq_users_username_lower", func.lower(User.username), unique=True)
