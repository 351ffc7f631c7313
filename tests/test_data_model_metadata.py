from __future__ import annotations

from sqlalchemy import CheckConstraint, UniqueConstraint

from app.db.models import (  # noqa: F401
    AsyncMatch,
    AsyncMatchRound,
    AttemptRecord,
    MatchSettlement,
    SubjectMastery,
    User,
)
from app.db.models.base import Base


def test_all_core_tables_registered() -> None:
    expected_tables = {
        "users",
        "subject_mastery",
        "attempt_records",
        "match_settlements",
        "async_matches",
        "async_match_rounds",
    }
    assert expected_tables.issubset(set(Base.metadata.tables))


def test_critical_constraints_present() -> None:
    users = Base.metadata.tables["users"]
    users_index_names = {index.name for index in users.indexes}
    assert "uq_users_username_lower" in users_index_names
    assert "idx_users_points" in users_index_names
    users_unique_names = {
        constraint.name for constraint in users.constraints if isinstance(constraint, UniqueConstraint)
    }
    assert "uq_users_external_id" in users_unique_names

    attempts = Base.metadata.tables["attempt_records"]
    attempt_unique_names = {
        constraint.name for constraint in attempts.constraints if isinstance(constraint, UniqueConstraint)
    }
    assert "uq_attempt_records_user_match_question" in attempt_unique_names

    settlements = Base.metadata.tables["match_settlements"]
    settlement_unique_names = {
        constraint.name for constraint in settlements.constraints if isinstance(constraint, UniqueConstraint)
    }
    assert "uq_match_settlements_user_match" in settlement_unique_names

    mastery = Base.metadata.tables["subject_mastery"]
    mastery_check_names = {
        constraint.name for constraint in mastery.constraints if isinstance(constraint, CheckConstraint)
    }
    assert "ck_subject_mastery_mastery_range" in mastery_check_names

    async_matches = Base.metadata.tables["async_matches"]
    async_check_names = {
        constraint.name for constraint in async_matches.constraints if isinstance(constraint, CheckConstraint)
    }
    assert "ck_async_matches_status" in async_check_names
    assert "ck_async_matches_distinct_participants" in async_check_names
    async_index_names = {index.name for index in async_matches.indexes}
    assert "idx_async_matches_status_expires" in async_index_names


def test_async_rounds_keyed_by_match_and_round() -> None:
    rounds = Base.metadata.tables["async_match_rounds"]
    assert [column.name for column in rounds.primary_key.columns] == ["match_id", "round_no"]
