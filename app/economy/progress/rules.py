from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from app.economy.progress.types import MatchOutcome, StandingSnapshot

POINTS_PER_CORRECT = 5
WIN_BONUS_POINTS = 25
LOSS_PENALTY_POINTS = 25
XP_PARTICIPATION = 10
XP_PER_CORRECT = 10
XP_WIN_BONUS = 50
POINTS_PER_LEVEL = 100

ATTEMPT_XP_CORRECT = 12
ATTEMPT_XP_INCORRECT = 3

MASTERY_MIN = 0.0
MASTERY_MAX = 100.0
MASTERY_BASELINE = 0.6
MASTERY_FACTOR_MIN = 6
MASTERY_FACTOR_SPREAD = 4

SHIELD_STREAK_THRESHOLD = 3


def mastery_factor(difficulty: int) -> int:
    return MASTERY_FACTOR_MIN + min(MASTERY_FACTOR_SPREAD, max(0, int(difficulty)) // 2)


def clamp_mastery(value: float) -> float:
    return max(MASTERY_MIN, min(MASTERY_MAX, value))


def apply_mastery(current: float, *, is_correct: bool, difficulty: int) -> tuple[float, float]:
    """Returns (new mastery, applied delta); the delta reflects clamping."""
    factor = mastery_factor(difficulty)
    step = factor * (1 - MASTERY_BASELINE) if is_correct else -factor * MASTERY_BASELINE
    updated = round(clamp_mastery(current + step), 4)
    return updated, round(updated - current, 4)


def subject_mastery(subtopic_values: Iterable[float]) -> float:
    values = list(subtopic_values)
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def accuracy_percent(*, attempts: int, correct: int) -> int:
    if attempts <= 0:
        return 0
    return round(correct * 100 / attempts)


def attempt_xp(is_correct: bool) -> int:
    return ATTEMPT_XP_CORRECT if is_correct else ATTEMPT_XP_INCORRECT


def level_for_points(points: int) -> int:
    return 1 + max(0, points) // POINTS_PER_LEVEL


def resolve_outcome(own_correct: int, other_correct: int) -> MatchOutcome:
    if own_correct > other_correct:
        return MatchOutcome.WIN
    if own_correct < other_correct:
        return MatchOutcome.LOSS
    return MatchOutcome.DRAW


def base_points_delta(*, correct_count: int, outcome: MatchOutcome) -> int:
    points = correct_count * POINTS_PER_CORRECT
    if outcome == MatchOutcome.WIN:
        return points + WIN_BONUS_POINTS
    if outcome == MatchOutcome.LOSS:
        return points - LOSS_PENALTY_POINTS
    return points


def base_xp_delta(*, correct_count: int, outcome: MatchOutcome) -> int:
    xp = XP_PARTICIPATION + correct_count * XP_PER_CORRECT
    if outcome == MatchOutcome.WIN:
        xp += XP_WIN_BONUS
    return xp


def streak_bonus(win_streak: int) -> int:
    if win_streak >= 4:
        return 8
    if win_streak == 3:
        return 5
    if win_streak == 2:
        return 3
    return 0


def apply_match_outcome(
    snapshot: StandingSnapshot,
    *,
    outcome: MatchOutcome,
    correct_count: int,
) -> tuple[StandingSnapshot, dict[str, int | bool]]:
    xp_delta = base_xp_delta(correct_count=correct_count, outcome=outcome)
    points_delta = correct_count * POINTS_PER_CORRECT
    bonus = 0
    shield_consumed = False
    shield_earned = False

    if outcome == MatchOutcome.WIN:
        win_streak = snapshot.current_streak + 1
        bonus = streak_bonus(win_streak)
        points_delta += WIN_BONUS_POINTS + bonus
        shield_earned = not snapshot.streak_shield and win_streak % SHIELD_STREAK_THRESHOLD == 0
        updated = replace(
            snapshot,
            wins=snapshot.wins + 1,
            current_streak=win_streak,
            best_streak=max(snapshot.best_streak, win_streak),
            loss_streak=0,
            streak_shield=snapshot.streak_shield or shield_earned,
        )
    elif outcome == MatchOutcome.LOSS:
        if snapshot.streak_shield:
            shield_consumed = True
            updated = replace(
                snapshot,
                losses=snapshot.losses + 1,
                loss_streak=snapshot.loss_streak + 1,
                streak_shield=False,
            )
        else:
            points_delta -= LOSS_PENALTY_POINTS
            updated = replace(
                snapshot,
                losses=snapshot.losses + 1,
                current_streak=0,
                loss_streak=snapshot.loss_streak + 1,
            )
    else:
        updated = replace(snapshot, draws=snapshot.draws + 1)

    points_after = max(0, snapshot.points + points_delta)
    updated = replace(
        updated,
        points=points_after,
        xp=snapshot.xp + xp_delta,
        level=level_for_points(points_after),
    )
    return updated, {
        "points_delta": points_after - snapshot.points,
        "xp_delta": xp_delta,
        "streak_bonus": bonus,
        "shield_consumed": shield_consumed,
        "shield_earned": shield_earned,
    }
