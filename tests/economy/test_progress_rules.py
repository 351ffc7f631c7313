from __future__ import annotations

import random

import pytest

from app.economy.progress.rules import (
    accuracy_percent,
    apply_mastery,
    apply_match_outcome,
    base_points_delta,
    base_xp_delta,
    level_for_points,
    mastery_factor,
    resolve_outcome,
    streak_bonus,
    subject_mastery,
)
from app.economy.progress.types import MatchOutcome, StandingSnapshot


def snapshot(
    *,
    points: int = 0,
    current_streak: int = 0,
    best_streak: int = 0,
    loss_streak: int = 0,
    streak_shield: bool = False,
) -> StandingSnapshot:
    return StandingSnapshot(
        points=points,
        xp=0,
        level=level_for_points(points),
        wins=0,
        losses=0,
        draws=0,
        current_streak=current_streak,
        best_streak=best_streak,
        loss_streak=loss_streak,
        streak_shield=streak_shield,
    )


@pytest.mark.parametrize(
    ("difficulty", "expected"),
    [(0, 6), (1, 6), (2, 7), (5, 8), (8, 10), (10, 10), (-3, 6)],
)
def test_mastery_factor_grows_with_difficulty_and_caps(difficulty: int, expected: int) -> None:
    assert mastery_factor(difficulty) == expected


def test_apply_mastery_correct_and_incorrect_steps() -> None:
    after, delta = apply_mastery(50.0, is_correct=True, difficulty=0)
    assert after == pytest.approx(52.4)
    assert delta == pytest.approx(2.4)

    after, delta = apply_mastery(50.0, is_correct=False, difficulty=0)
    assert after == pytest.approx(46.4)
    assert delta == pytest.approx(-3.6)


def test_apply_mastery_clamps_and_reports_applied_delta() -> None:
    after, delta = apply_mastery(1.0, is_correct=False, difficulty=10)
    assert after == 0.0
    assert delta == pytest.approx(-1.0)

    after, delta = apply_mastery(99.0, is_correct=True, difficulty=10)
    assert after == 100.0
    assert delta == pytest.approx(1.0)


def test_subject_mastery_and_accuracy_helpers() -> None:
    assert subject_mastery([]) == 0.0
    assert subject_mastery([40.0, 60.0, 50.0]) == 50.0
    assert accuracy_percent(attempts=0, correct=0) == 0
    assert accuracy_percent(attempts=3, correct=2) == 67


def test_level_for_points_boundaries() -> None:
    assert level_for_points(0) == 1
    assert level_for_points(99) == 1
    assert level_for_points(100) == 2
    assert level_for_points(250) == 3
    assert level_for_points(-40) == 1


def test_outcome_and_base_deltas() -> None:
    assert resolve_outcome(5, 3) == MatchOutcome.WIN
    assert resolve_outcome(2, 3) == MatchOutcome.LOSS
    assert resolve_outcome(4, 4) == MatchOutcome.DRAW

    assert base_points_delta(correct_count=6, outcome=MatchOutcome.WIN) == 55
    assert base_points_delta(correct_count=2, outcome=MatchOutcome.LOSS) == -15
    assert base_points_delta(correct_count=4, outcome=MatchOutcome.DRAW) == 20
    assert base_xp_delta(correct_count=6, outcome=MatchOutcome.WIN) == 120
    assert base_xp_delta(correct_count=0, outcome=MatchOutcome.LOSS) == 10


@pytest.mark.parametrize(("win_streak", "bonus"), [(1, 0), (2, 3), (3, 5), (4, 8), (9, 8)])
def test_streak_bonus_table(win_streak: int, bonus: int) -> None:
    assert streak_bonus(win_streak) == bonus


def test_win_extends_streak_and_adds_bonus() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=100, current_streak=1, best_streak=1, loss_streak=2),
        outcome=MatchOutcome.WIN,
        correct_count=6,
    )

    assert deltas["streak_bonus"] == 3
    assert deltas["points_delta"] == 30 + 25 + 3
    assert deltas["xp_delta"] == 10 + 60 + 50
    assert updated.points == 158
    assert updated.level == 2
    assert updated.current_streak == 2
    assert updated.best_streak == 2
    assert updated.loss_streak == 0
    assert updated.wins == 1


def test_third_consecutive_win_earns_shield() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=200, current_streak=2, best_streak=2),
        outcome=MatchOutcome.WIN,
        correct_count=5,
    )

    assert deltas["shield_earned"] is True
    assert updated.streak_shield is True


def test_shield_earned_again_at_next_multiple() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=400, current_streak=5, best_streak=5),
        outcome=MatchOutcome.WIN,
        correct_count=5,
    )

    assert updated.current_streak == 6
    assert deltas["shield_earned"] is True


def test_loss_with_shield_keeps_streak_and_skips_penalty() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=300, current_streak=3, best_streak=3, streak_shield=True),
        outcome=MatchOutcome.LOSS,
        correct_count=2,
    )

    assert deltas["shield_consumed"] is True
    assert deltas["points_delta"] == 10
    assert updated.current_streak == 3
    assert updated.streak_shield is False
    assert updated.losses == 1


def test_loss_without_shield_resets_streak_and_floors_points() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=10, current_streak=4, best_streak=4),
        outcome=MatchOutcome.LOSS,
        correct_count=0,
    )

    assert updated.points == 0
    assert deltas["points_delta"] == -10
    assert updated.current_streak == 0
    assert updated.best_streak == 4
    assert updated.loss_streak == 1


def test_draw_leaves_streak_untouched() -> None:
    updated, deltas = apply_match_outcome(
        snapshot(points=50, current_streak=2, best_streak=2),
        outcome=MatchOutcome.DRAW,
        correct_count=3,
    )

    assert deltas["points_delta"] == 15
    assert updated.current_streak == 2
    assert updated.draws == 1


@pytest.mark.parametrize("seed", [1, 7, 42, 2026])
def test_mastery_stays_within_bounds_over_long_answer_streaks(seed: int) -> None:
    rng = random.Random(seed)
    mastery = rng.uniform(0, 100)
    for _ in range(500):
        before = mastery
        is_correct = rng.random() < rng.choice((0.05, 0.5, 0.95))
        mastery, applied = apply_mastery(mastery, is_correct=is_correct, difficulty=rng.randint(0, 6))
        assert 0.0 <= mastery <= 100.0
        assert mastery == pytest.approx(before + applied, abs=1e-3)
        if is_correct:
            assert applied >= 0
        else:
            assert applied <= 0
