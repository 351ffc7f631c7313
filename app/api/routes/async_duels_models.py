from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class AsyncDuelCreateRequest(BaseModel):
    opponent_username: str = Field(min_length=1, max_length=64)
    subject: str | None = Field(default=None, max_length=64)


class AsyncDuelAnswerRequest(BaseModel):
    choice: int = Field(ge=-1, le=3)
    client_response_ms: int | None = Field(default=None, ge=0, le=86_400_000)
    round: int | None = Field(default=None, ge=1)


class AsyncRoundResponse(BaseModel):
    round: int
    question: dict[str, Any]
    scored: bool
    your_choice: int | None = None
    your_correct: bool | None = None
    opponent_answered: bool
    opponent_choice: int | None = None
    opponent_correct: bool | None = None
    correct_option: int | None = None
    explanation: str | None = None


class AsyncMatchResponse(BaseModel):
    match_id: UUID
    subject: str
    status: str
    total_rounds: int = Field(ge=1)
    current_round: int = Field(ge=1)
    participant_id: int
    opponent_id: int
    is_initiator: bool
    your_score: int = Field(ge=0)
    opponent_score: int = Field(ge=0)
    your_turn: bool
    unread: bool
    winner_user_id: int | None = None
    resigned_by_user_id: int | None = None
    created_at: datetime
    last_activity_at: datetime
    expires_at: datetime
    completed_at: datetime | None = None
    rounds: list[AsyncRoundResponse]


class AsyncAnswerResponse(BaseModel):
    accepted: bool
    reason: str | None = None
    round: int
    is_correct: bool | None = None
    round_scored: bool
    match_finished: bool
    match: AsyncMatchResponse


class AsyncInboxItemResponse(BaseModel):
    match_id: UUID
    subject: str
    status: str
    opponent_id: int
    your_score: int = Field(ge=0)
    opponent_score: int = Field(ge=0)
    current_round: int
    total_rounds: int
    your_turn: bool
    unread: bool
    last_activity_at: datetime
    expires_at: datetime


class AsyncInboxResponse(BaseModel):
    items: list[AsyncInboxItemResponse]


class AsyncMarkReadResponse(BaseModel):
    match_id: UUID
    was_unread: bool
