from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    question_id: str
    subject: str
    topic: str
    text: str
    options: tuple[str, str, str, str]
    correct_option: int
    explanation: str = ""
    difficulty: int = 0
    created_at: datetime | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "question_id": self.question_id,
            "subject": self.subject,
            "topic": self.topic,
            "text": self.text,
            "options": list(self.options),
            "correct_option": self.correct_option,
            "explanation": self.explanation,
            "difficulty": self.difficulty,
            "created_at": self.created_at.isoformat() if self.created_at is not None else None,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> QuizQuestion:
        created_at_raw = payload.get("created_at")
        options = tuple(str(option) for option in payload["options"])
        return cls(
            question_id=str(payload["question_id"]),
            subject=str(payload["subject"]),
            topic=str(payload.get("topic") or payload["subject"]),
            text=str(payload["text"]),
            options=options,  # type: ignore[arg-type]
            correct_option=int(payload["correct_option"]),
            explanation=str(payload.get("explanation") or ""),
            difficulty=int(payload.get("difficulty") or 0),
            created_at=datetime.fromisoformat(created_at_raw) if created_at_raw else None,
        )


@dataclass(frozen=True, slots=True)
class QuestionView:
    question_id: str
    subject: str
    topic: str
    text: str
    options: tuple[str, str, str, str]
    round_number: int
    total_rounds: int
    deadline_seconds: float | None = None

    @classmethod
    def from_question(
        cls,
        question: QuizQuestion,
        *,
        round_number: int,
        total_rounds: int,
        deadline_seconds: float | None = None,
    ) -> QuestionView:
        return cls(
            question_id=question.question_id,
            subject=question.subject,
            topic=question.topic,
            text=question.text,
            options=question.options,
            round_number=round_number,
            total_rounds=total_rounds,
            deadline_seconds=deadline_seconds,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "question_id": self.question_id,
            "subject": self.subject,
            "topic": self.topic,
            "text": self.text,
            "options": list(self.options),
            "round": self.round_number,
            "total_rounds": self.total_rounds,
        }
        if self.deadline_seconds is not None:
            payload["deadline_seconds"] = self.deadline_seconds
        return payload
