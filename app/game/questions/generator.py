from __future__ import annotations

from typing import Any, Protocol
from uuid import uuid4

import httpx

from app.core.clock import DeadlineClock
from app.game.errors import GenerationUnavailableError
from app.game.questions.types import QuizQuestion
from app.game.questions.validation import strip_option_label


class QuestionGenerator(Protocol):
    async def generate(self, subject: str, difficulty: int) -> QuizQuestion: ...


def parse_generated_question(payload: dict[str, Any], *, subject: str, difficulty: int) -> QuizQuestion:
    try:
        raw_options = payload.get("options", payload.get("choices"))
        if not isinstance(raw_options, list):
            raise ValueError("options must be a list")
        options = tuple(strip_option_label(option) for option in raw_options)
        if len(options) != 4:
            raise ValueError("expected four options")
        correct_raw = payload.get("correct_option", payload.get("correct_index"))
        return QuizQuestion(
            question_id=str(payload.get("question_id") or payload.get("id") or f"gen_{uuid4().hex}"),
            subject=str(payload.get("subject") or subject),
            topic=str(payload.get("topic") or subject),
            text=str(payload.get("text") or payload.get("stem") or "").strip(),
            options=options,  # type: ignore[arg-type]
            correct_option=int(correct_raw),
            explanation=str(payload.get("explanation") or ""),
            difficulty=int(payload.get("difficulty", difficulty)),
            created_at=DeadlineClock.utcnow(),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise GenerationUnavailableError(f"malformed generated question: {exc}") from exc


class HttpQuestionGenerator:
    def __init__(self, *, base_url: str, client: httpx.AsyncClient | None = None, timeout: float = 10.0) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def generate(self, subject: str, difficulty: int) -> QuizQuestion:
        try:
            response = await self._client.post(
                f"{self._base_url}/questions",
                json={"subject": subject, "difficulty": difficulty},
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise GenerationUnavailableError(str(exc)) from exc
        if not isinstance(payload, dict):
            raise GenerationUnavailableError("generator returned a non-object payload")
        return parse_generated_question(payload, subject=subject, difficulty=difficulty)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
