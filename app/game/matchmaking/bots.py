from __future__ import annotations

import itertools
import random
from dataclasses import dataclass

from app.game.duels.types import DuelSeat
from app.game.participants import ParticipantProfile

ACCURACY_JITTER = 0.03
MIN_ANSWER_SECONDS = 1.2

# (points below, accuracy, fastest answer, slowest answer); None closes the table.
_SKILL_BANDS: tuple[tuple[int | None, float, float, float], ...] = (
    (400, 0.52, 6.0, 10.0),
    (900, 0.62, 5.0, 9.0),
    (1500, 0.70, 4.0, 8.0),
    (None, 0.78, 3.0, 7.0),
)

_FIRST_NAMES: tuple[str, ...] = (
    "Alex",
    "Jordan",
    "Casey",
    "Riley",
    "Morgan",
    "Taylor",
    "Jamie",
    "Avery",
    "Quinn",
    "Harper",
    "Rowan",
    "Emerson",
)
_NAME_SUFFIXES: tuple[str, ...] = ("Law", "Brief", "Esq", "Clerk", "Counsel", "Bar", "Jd", "Tort")


@dataclass(frozen=True, slots=True)
class BotPolicy:
    # Each win in the current streak raises bot accuracy by streak_nudge and
    # each consecutive loss lowers it.
    streak_nudge: float = 0.03
    min_accuracy: float = 0.35
    max_accuracy: float = 0.9


@dataclass(frozen=True, slots=True)
class BotProfile:
    accuracy: float
    min_answer_seconds: float
    max_answer_seconds: float


@dataclass(frozen=True, slots=True)
class BotDecision:
    choice: int
    answer_seconds: float


def _band_for_points(points: int) -> tuple[float, float, float]:
    for upper_bound, accuracy, fastest, slowest in _SKILL_BANDS:
        if upper_bound is None or points < upper_bound:
            return accuracy, fastest, slowest
    raise AssertionError("skill band table must end with an open band")


def bot_accuracy(
    *,
    points: int,
    win_streak: int,
    loss_streak: int,
    policy: BotPolicy,
    jitter: float = 0.0,
) -> float:
    base_accuracy, _, _ = _band_for_points(points)
    nudged = base_accuracy + jitter + policy.streak_nudge * (max(0, win_streak) - max(0, loss_streak))
    return round(max(policy.min_accuracy, min(policy.max_accuracy, nudged)), 4)


def build_bot_profile(
    participant: ParticipantProfile,
    *,
    policy: BotPolicy,
    rng: random.Random,
) -> BotProfile:
    _, fastest, slowest = _band_for_points(participant.points)
    accuracy = bot_accuracy(
        points=participant.points,
        win_streak=participant.current_streak,
        loss_streak=participant.loss_streak,
        policy=policy,
        jitter=rng.uniform(-ACCURACY_JITTER, ACCURACY_JITTER),
    )
    return BotProfile(accuracy=accuracy, min_answer_seconds=fastest, max_answer_seconds=slowest)


def decide(profile: BotProfile, *, correct_option: int, rng: random.Random) -> BotDecision:
    if rng.random() < profile.accuracy:
        choice = correct_option
    else:
        choice = rng.choice([option for option in range(4) if option != correct_option])
    answer_seconds = rng.triangular(
        profile.min_answer_seconds,
        profile.max_answer_seconds,
        (profile.min_answer_seconds + profile.max_answer_seconds) / 2,
    )
    return BotDecision(choice=choice, answer_seconds=max(MIN_ANSWER_SECONDS, answer_seconds))


class BotFactory:
    def __init__(self, *, policy: BotPolicy, rng: random.Random | None = None) -> None:
        self._policy = policy
        self._rng = rng or random.Random()
        self._ids = itertools.count(1)

    def create_seat(self, opponent_of: ParticipantProfile) -> DuelSeat:
        rng = self._rng
        username = f"{rng.choice(_FIRST_NAMES)}{rng.choice(_NAME_SUFFIXES)}{rng.randint(100, 999)}"
        profile = ParticipantProfile(
            participant_id=-next(self._ids),
            username=username,
            display_name=username,
            level=max(1, opponent_of.level + rng.randint(-1, 1)),
            points=max(0, opponent_of.points + rng.randint(-60, 60)),
            is_bot=True,
        )
        return DuelSeat(
            profile=profile,
            bot=build_bot_profile(opponent_of, policy=self._policy, rng=rng),
        )
