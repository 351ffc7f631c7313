"""duel_arena_core

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "1a2b3c4d5e6f"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("external_id", sa.String(128), nullable=False),
        sa.Column("username", sa.Text(), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("xp", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("level", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("wins", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("losses", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("draws", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("current_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("best_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("loss_streak", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("streak_shield", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('ACTIVE','DEACTIVATED')", name="ck_users_status"),
        sa.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
        sa.CheckConstraint("level >= 1", name="ck_users_level_positive"),
        sa.CheckConstraint("current_streak >= 0", name="ck_users_current_streak_non_negative"),
        sa.CheckConstraint("loss_streak >= 0", name="ck_users_loss_streak_non_negative"),
        sa.UniqueConstraint("external_id", name="uq_users_external_id"),
    )
    op.create_index("idx_users_points", "users", ["points", "id"])
    op.create_index("idx_users_created_at", "users", ["created_at"])
    op.create_index("idx_users_last_seen", "users", ["last_seen_at"])
    op.create_index("uq_users_username_lower", "users", [sa.text("lower(username)")], unique=True)

    op.create_table(
        "subject_mastery",
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("subject", sa.String(64), nullable=False),
        sa.Column("subtopic", sa.String(128), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("correct", sa.Integer(), nullable=False),
        sa.Column("mastery", sa.Float(), nullable=False),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id", "subject", "subtopic"),
        sa.CheckConstraint("mastery >= 0 AND mastery <= 100", name="ck_subject_mastery_mastery_range"),
        sa.CheckConstraint("attempts >= 0", name="ck_subject_mastery_attempts_non_negative"),
        sa.CheckConstraint("correct >= 0 AND correct <= attempts", name="ck_subject_mastery_correct_range"),
    )
    op.create_index("idx_subject_mastery_user_subject", "subject_mastery", ["user_id", "subject"])

    op.create_table(
        "attempt_records",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("match_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("subject", sa.String(64), nullable=False),
        sa.Column("subtopic", sa.String(128), nullable=False),
        sa.Column("difficulty", sa.SmallInteger(), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=False),
        sa.Column("response_ms", sa.Integer(), nullable=False),
        sa.Column("mastery_delta", sa.Float(), nullable=False),
        sa.Column("mastery_after", sa.Float(), nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint(
            "user_id",
            "match_id",
            "question_id",
            name="uq_attempt_records_user_match_question",
        ),
        sa.CheckConstraint("response_ms >= 0", name="ck_attempt_records_response_ms_non_negative"),
        sa.CheckConstraint("difficulty >= 0", name="ck_attempt_records_difficulty_non_negative"),
    )
    op.create_index("idx_attempt_records_user_answered", "attempt_records", ["user_id", "answered_at"])
    op.create_index("idx_attempt_records_match", "attempt_records", ["match_id"])

    op.create_table(
        "match_settlements",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("match_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("match_kind", sa.String(8), nullable=False),
        sa.Column("outcome", sa.String(8), nullable=False),
        sa.Column("correct_count", sa.Integer(), nullable=False),
        sa.Column("points_delta", sa.Integer(), nullable=False),
        sa.Column("xp_delta", sa.Integer(), nullable=False),
        sa.Column("streak_bonus", sa.Integer(), nullable=False),
        sa.Column("shield_consumed", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("user_id", "match_id", name="uq_match_settlements_user_match"),
        sa.CheckConstraint("match_kind IN ('LIVE','ASYNC')", name="ck_match_settlements_match_kind"),
        sa.CheckConstraint("outcome IN ('WIN','LOSS','DRAW')", name="ck_match_settlements_outcome"),
    )
    op.create_index("idx_match_settlements_user_created", "match_settlements", ["user_id", "created_at"])

    op.create_table(
        "async_matches",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("initiator_user_id", sa.BigInteger(), nullable=False),
        sa.Column("opponent_user_id", sa.BigInteger(), nullable=False),
        sa.Column("subject", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("total_rounds", sa.Integer(), nullable=False),
        sa.Column("current_round", sa.Integer(), nullable=False),
        sa.Column("initiator_score", sa.Integer(), nullable=False),
        sa.Column("opponent_score", sa.Integer(), nullable=False),
        sa.Column("winner_user_id", sa.BigInteger(), nullable=True),
        sa.Column("resigned_by_user_id", sa.BigInteger(), nullable=True),
        sa.Column("initiator_unread", sa.Boolean(), nullable=False),
        sa.Column("opponent_unread", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["initiator_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["opponent_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["winner_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["resigned_by_user_id"], ["users.id"]),
        sa.CheckConstraint(
            "status IN ('PENDING','ACTIVE','COMPLETED','RESIGNED','EXPIRED')",
            name="ck_async_matches_status",
        ),
        sa.CheckConstraint("total_rounds >= 1", name="ck_async_matches_total_rounds_positive"),
        sa.CheckConstraint("current_round >= 1", name="ck_async_matches_current_round_positive"),
        sa.CheckConstraint(
            "initiator_score >= 0 AND opponent_score >= 0",
            name="ck_async_matches_scores_non_negative",
        ),
        sa.CheckConstraint(
            "initiator_user_id <> opponent_user_id",
            name="ck_async_matches_distinct_participants",
        ),
    )
    op.create_index(
        "idx_async_matches_initiator_activity",
        "async_matches",
        ["initiator_user_id", "last_activity_at"],
    )
    op.create_index(
        "idx_async_matches_opponent_activity",
        "async_matches",
        ["opponent_user_id", "last_activity_at"],
    )
    op.create_index("idx_async_matches_status_expires", "async_matches", ["status", "expires_at"])

    op.create_table(
        "async_match_rounds",
        sa.Column("match_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("round_no", sa.Integer(), nullable=False),
        sa.Column("question_id", sa.String(64), nullable=False),
        sa.Column("fingerprint", sa.String(40), nullable=False),
        sa.Column("topic", sa.String(128), nullable=False),
        sa.Column("difficulty", sa.SmallInteger(), nullable=False),
        sa.Column("correct_option", sa.SmallInteger(), nullable=False),
        sa.Column("question_payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("initiator_choice", sa.SmallInteger(), nullable=True),
        sa.Column("initiator_correct", sa.Boolean(), nullable=True),
        sa.Column("initiator_response_ms", sa.Integer(), nullable=True),
        sa.Column("initiator_answered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opponent_choice", sa.SmallInteger(), nullable=True),
        sa.Column("opponent_correct", sa.Boolean(), nullable=True),
        sa.Column("opponent_response_ms", sa.Integer(), nullable=True),
        sa.Column("opponent_answered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scored_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["match_id"], ["async_matches.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("match_id", "round_no"),
        sa.CheckConstraint("round_no >= 1", name="ck_async_match_rounds_round_positive"),
        sa.CheckConstraint(
            "correct_option BETWEEN 0 AND 3",
            name="ck_async_match_rounds_correct_option_range",
        ),
        sa.CheckConstraint(
            "initiator_choice IS NULL OR initiator_choice BETWEEN -1 AND 3",
            name="ck_async_match_rounds_initiator_choice_range",
        ),
        sa.CheckConstraint(
            "opponent_choice IS NULL OR opponent_choice BETWEEN -1 AND 3",
            name="ck_async_match_rounds_opponent_choice_range",
        ),
    )


def downgrade() -> None:
    op.drop_table("async_match_rounds")
    op.drop_index("idx_async_matches_status_expires", table_name="async_matches")
    op.drop_index("idx_async_matches_opponent_activity", table_name="async_matches")
    op.drop_index("idx_async_matches_initiator_activity", table_name="async_matches")
    op.drop_table("async_matches")
    op.drop_index("idx_match_settlements_user_created", table_name="match_settlements")
    op.drop_table("match_settlements")
    op.drop_index("idx_attempt_records_match", table_name="attempt_records")
    op.drop_index("idx_attempt_records_user_answered", table_name="attempt_records")
    op.drop_table("attempt_records")
    op.drop_index("idx_subject_mastery_user_subject", table_name="subject_mastery")
    op.drop_table("subject_mastery")
    op.drop_index("uq_users_username_lower", table_name="users")
    op.drop_index("idx_users_last_seen", table_name="users")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_index("idx_users_points", table_name="users")
    op.drop_table("users")
