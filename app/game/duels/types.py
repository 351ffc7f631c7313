from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

from app.core.clock import Deadline
from app.economy.progress.types import MatchOutcome
from app.game.participants import ParticipantProfile
from app.game.questions.types import QuizQuestion

if TYPE_CHECKING:
    from app.game.matchmaking.bots import BotProfile

NO_ANSWER = -1


class DuelPhase(str, Enum):
    AWAITING_ROUND = "AWAITING_ROUND"
    ROUND_OPEN = "ROUND_OPEN"
    ROUND_SCORING = "ROUND_SCORING"
    FINISHED = "FINISHED"


class SubmissionRejection(str, Enum):
    DUPLICATE = "duplicate"
    ROUND_CLOSED = "round_closed"
    LATE = "late"
    MALFORMED_CHOICE = "malformed_choice"
    NOT_IN_SESSION = "not_in_session"


@dataclass(slots=True)
class SubmitAck:
    accepted: bool
    round_number: int | None = None
    reason: SubmissionRejection | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "round": self.round_number,
            "reason": self.reason.value if self.reason is not None else None,
        }


@dataclass(frozen=True, slots=True)
class DuelSeat:
    profile: ParticipantProfile
    bot: BotProfile | None = None

    @property
    def participant_id(self) -> int:
        return self.profile.participant_id

    @property
    def is_bot(self) -> bool:
        return self.bot is not None


@dataclass(slots=True)
class SideAnswer:
    choice: int
    is_correct: bool
    response_ms: int
    answered_at: datetime
    client_response_ms: int | None = None
    timed_out: bool = False
    forfeited: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "choice": self.choice,
            "correct": self.is_correct,
            "response_ms": self.response_ms,
            "timed_out": self.timed_out,
            "forfeited": self.forfeited,
        }


@dataclass(slots=True)
class RoundRecord:
    round_number: int
    question: QuizQuestion | None
    fingerprint: str | None
    issued_at: datetime
    deadline: Deadline | None
    opened_at: float = 0.0
    answers: dict[int, SideAnswer] = field(default_factory=dict)
    scored: bool = False

    @property
    def forfeited(self) -> bool:
        return self.question is None


@dataclass(slots=True)
class SideResult:
    participant_id: int
    correct_count: int
    outcome: MatchOutcome
    points_delta: int
    xp_delta: int


@dataclass(slots=True)
class DuelResult:
    session_id: UUID
    subject: str
    total_rounds: int
    rounds_played: int
    scores: dict[int, int]
    winner_id: int | None
    is_draw: bool
    sides: tuple[SideResult, SideResult]
    aborted: bool = False
    forfeited_by: int | None = None

    def side_for(self, participant_id: int) -> SideResult:
        for side in self.sides:
            if side.participant_id == participant_id:
                return side
        raise KeyError(participant_id)

    def to_payload(self, participant_id: int) -> dict[str, Any]:
        own = self.side_for(participant_id)
        other = next(side for side in self.sides if side.participant_id != participant_id)
        return {
            "session_id": str(self.session_id),
            "subject": self.subject,
            "total_rounds": self.total_rounds,
            "rounds_played": self.rounds_played,
            "your_score": own.correct_count,
            "opponent_score": other.correct_count,
            "outcome": own.outcome.value,
            "winner_id": self.winner_id,
            "draw": self.is_draw,
            "points_delta": own.points_delta,
            "xp_delta": own.xp_delta,
            "aborted": self.aborted,
            "forfeited_by": self.forfeited_by,
        }
