from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MatchOutcome(str, Enum):
    WIN = "WIN"
    LOSS = "LOSS"
    DRAW = "DRAW"


class MatchKind(str, Enum):
    LIVE = "LIVE"
    ASYNC = "ASYNC"


@dataclass(slots=True)
class ProgressDelta:
    participant_id: int
    subject: str
    subtopic: str
    is_correct: bool
    xp_gained: int
    mastery_before: float
    mastery_after: float
    mastery_delta: float
    attempts: int
    correct: int
    accuracy: int
    subject_mastery: float


@dataclass(slots=True)
class StandingSnapshot:
    points: int
    xp: int
    level: int
    wins: int
    losses: int
    draws: int
    current_streak: int
    best_streak: int
    loss_streak: int
    streak_shield: bool


@dataclass(slots=True)
class MatchResultDelta:
    participant_id: int
    outcome: MatchOutcome
    correct_count: int
    points_delta: int
    xp_delta: int
    streak_bonus: int
    shield_consumed: bool
    shield_earned: bool
    points_after: int
    level_after: int
    current_streak: int
