from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class AsyncRoundView:
    round_no: int
    question: dict[str, Any]
    scored: bool
    your_choice: int | None
    your_correct: bool | None
    opponent_answered: bool
    opponent_choice: int | None = None
    opponent_correct: bool | None = None
    correct_option: int | None = None
    explanation: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "round": self.round_no,
            "question": self.question,
            "scored": self.scored,
            "your_choice": self.your_choice,
            "your_correct": self.your_correct,
            "opponent_answered": self.opponent_answered,
            "opponent_choice": self.opponent_choice,
            "opponent_correct": self.opponent_correct,
            "correct_option": self.correct_option,
            "explanation": self.explanation,
        }


@dataclass(slots=True)
class AsyncMatchSnapshot:
    match_id: UUID
    subject: str
    status: str
    total_rounds: int
    current_round: int
    participant_id: int
    opponent_id: int
    is_initiator: bool
    your_score: int
    opponent_score: int
    your_turn: bool
    unread: bool
    winner_user_id: int | None
    resigned_by_user_id: int | None
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None
    rounds: list[AsyncRoundView] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "match_id": str(self.match_id),
            "subject": self.subject,
            "status": self.status,
            "total_rounds": self.total_rounds,
            "current_round": self.current_round,
            "participant_id": self.participant_id,
            "opponent_id": self.opponent_id,
            "is_initiator": self.is_initiator,
            "your_score": self.your_score,
            "opponent_score": self.opponent_score,
            "your_turn": self.your_turn,
            "unread": self.unread,
            "winner_user_id": self.winner_user_id,
            "resigned_by_user_id": self.resigned_by_user_id,
            "created_at": _iso(self.created_at),
            "last_activity_at": _iso(self.last_activity_at),
            "expires_at": _iso(self.expires_at),
            "completed_at": _iso(self.completed_at),
            "rounds": [round_view.to_payload() for round_view in self.rounds],
        }


@dataclass(slots=True)
class AsyncSubmitResult:
    accepted: bool
    snapshot: AsyncMatchSnapshot
    round_no: int
    reason: str | None = None
    is_correct: bool | None = None
    round_scored: bool = False
    match_finished: bool = False

    def to_payload(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "reason": self.reason,
            "round": self.round_no,
            "is_correct": self.is_correct,
            "round_scored": self.round_scored,
            "match_finished": self.match_finished,
            "match": self.snapshot.to_payload(),
        }


@dataclass(slots=True)
class AsyncInboxItem:
    match_id: UUID
    subject: str
    status: str
    opponent_id: int
    your_score: int
    opponent_score: int
    current_round: int
    total_rounds: int
    your_turn: bool
    unread: bool
    last_activity_at: datetime
    expires_at: datetime

    def to_payload(self) -> dict[str, Any]:
        return {
            "match_id": str(self.match_id),
            "subject": self.subject,
            "status": self.status,
            "opponent_id": self.opponent_id,
            "your_score": self.your_score,
            "opponent_score": self.opponent_score,
            "current_round": self.current_round,
            "total_rounds": self.total_rounds,
            "your_turn": self.your_turn,
            "unread": self.unread,
            "last_activity_at": _iso(self.last_activity_at),
            "expires_at": _iso(self.expires_at),
        }
