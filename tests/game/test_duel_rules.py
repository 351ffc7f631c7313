from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.economy.progress.types import MatchOutcome
from app.game.duels.rules import (
    build_duel_result,
    is_correct_choice,
    is_valid_choice,
    live_round_difficulty,
    tally_scores,
)
from app.game.duels.types import NO_ANSWER, RoundRecord, SideAnswer

UTC = timezone.utc
NOW_UTC = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def _record(round_number: int, answers: dict[int, bool], *, scored: bool = True) -> RoundRecord:
    record = RoundRecord(
        round_number=round_number,
        question=None,
        fingerprint=None,
        issued_at=NOW_UTC,
        deadline=None,
        scored=scored,
    )
    for participant_id, is_correct in answers.items():
        record.answers[participant_id] = SideAnswer(
            choice=0 if is_correct else 1,
            is_correct=is_correct,
            response_ms=1000,
            answered_at=NOW_UTC,
        )
    return record


@pytest.mark.parametrize(
    ("choice", "expected"),
    [(0, True), (3, True), (NO_ANSWER, True), (4, False), (-2, False), (True, False), ("1", False), (None, False)],
)
def test_is_valid_choice(choice: object, expected: bool) -> None:
    assert is_valid_choice(choice) is expected


def test_no_answer_is_never_correct() -> None:
    assert is_correct_choice(2, 2) is True
    assert is_correct_choice(NO_ANSWER, 2) is False


def test_live_round_difficulty_ramps_and_caps() -> None:
    assert [live_round_difficulty(index) for index in range(6)] == [0, 0, 1, 1, 2, 2]
    assert live_round_difficulty(40) == 10


def test_tally_scores_ignores_unscored_rounds() -> None:
    rounds = [
        _record(1, {1: True, 2: False}),
        _record(2, {1: True, 2: True}),
        _record(3, {1: True, 2: True}, scored=False),
    ]
    assert tally_scores(rounds, (1, 2)) == {1: 2, 2: 1}


def test_build_duel_result_draw() -> None:
    result = build_duel_result(
        session_id=uuid4(),
        subject="Torts",
        total_rounds=2,
        rounds=[_record(1, {1: True, 2: True}), _record(2, {1: False, 2: False})],
        participant_ids=(1, 2),
    )

    assert result.is_draw is True
    assert result.winner_id is None
    assert result.side_for(1).outcome == MatchOutcome.DRAW
    assert result.side_for(1).points_delta == 5


def test_build_duel_result_forfeit_overrides_score() -> None:
    result = build_duel_result(
        session_id=uuid4(),
        subject="Torts",
        total_rounds=3,
        rounds=[_record(1, {1: True, 2: False})],
        participant_ids=(1, 2),
        forfeited_by=1,
    )

    assert result.winner_id == 2
    assert result.side_for(1).outcome == MatchOutcome.LOSS
    assert result.side_for(2).outcome == MatchOutcome.WIN
    assert result.side_for(2).correct_count == 0
    assert result.to_payload(2)["forfeited_by"] == 1
