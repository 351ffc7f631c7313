from __future__ import annotations

import asyncio
from collections.abc import Collection
from dataclasses import dataclass

import structlog

from app.core.clock import DeadlineClock
from app.game.errors import GenerationUnavailableError
from app.game.questions.generator import QuestionGenerator
from app.game.questions.static_bank import select_fallback_question
from app.game.questions.types import QuizQuestion
from app.game.questions.validation import QuestionValidationError, question_fingerprint, validate_question

logger = structlog.get_logger(__name__)

QUESTION_SOURCE_GENERATED = "GENERATED"
QUESTION_SOURCE_FALLBACK = "FALLBACK"


@dataclass(frozen=True, slots=True)
class SuppliedQuestion:
    question: QuizQuestion
    fingerprint: str
    source: str


class QuestionSupplier:
    """Hands out validated, unseen questions within a bounded time budget.

    The generator gets `attempts` tries that share one overall deadline of
    `timeout_seconds`; invalid or repeated items use up a try. When the budget
    runs out the local static bank is used, and only when that is exhausted too
    does the caller see `GenerationUnavailableError`.
    """

    def __init__(
        self,
        *,
        generator: QuestionGenerator | None,
        clock: DeadlineClock,
        timeout_seconds: float,
        attempts: int,
    ) -> None:
        self._generator = generator
        self._clock = clock
        self._timeout_seconds = max(0.05, float(timeout_seconds))
        self._attempts = max(1, int(attempts))

    async def next_question(
        self,
        subject: str,
        *,
        difficulty: int,
        seen_fingerprints: Collection[str],
        selection_seed: str,
    ) -> SuppliedQuestion:
        if self._generator is not None:
            supplied = await self._try_generate(
                subject,
                difficulty=difficulty,
                seen_fingerprints=seen_fingerprints,
            )
            if supplied is not None:
                return supplied

        fallback = select_fallback_question(
            subject,
            seen_fingerprints=seen_fingerprints,
            selection_seed=selection_seed,
        )
        if fallback is None:
            logger.warning("question_supply_exhausted", subject=subject, seen_total=len(seen_fingerprints))
            raise GenerationUnavailableError(f"no question available for {subject}")

        logger.info(
            "question_fallback_used",
            subject=subject,
            question_id=fallback.question_id,
        )
        return SuppliedQuestion(
            question=fallback,
            fingerprint=question_fingerprint(fallback.text),
            source=QUESTION_SOURCE_FALLBACK,
        )

    async def _try_generate(
        self,
        subject: str,
        *,
        difficulty: int,
        seen_fingerprints: Collection[str],
    ) -> SuppliedQuestion | None:
        assert self._generator is not None
        deadline = self._clock.deadline_after(self._timeout_seconds)
        for attempt in range(1, self._attempts + 1):
            remaining = deadline.remaining()
            if remaining <= 0:
                logger.warning("question_generation_budget_exhausted", subject=subject, attempt=attempt)
                return None
            try:
                question = await asyncio.wait_for(
                    self._generator.generate(subject, difficulty),
                    timeout=remaining,
                )
                validate_question(question)
            except asyncio.TimeoutError:
                logger.warning("question_generation_timeout", subject=subject, attempt=attempt)
                return None
            except QuestionValidationError as exc:
                logger.warning(
                    "question_generation_invalid",
                    subject=subject,
                    attempt=attempt,
                    reason=str(exc),
                )
                continue
            except GenerationUnavailableError as exc:
                logger.warning(
                    "question_generation_unavailable",
                    subject=subject,
                    attempt=attempt,
                    reason=str(exc),
                )
                continue
            except Exception:
                logger.exception("question_generation_failed", subject=subject, attempt=attempt)
                continue

            fingerprint = question_fingerprint(question.text)
            if fingerprint in seen_fingerprints:
                logger.info("question_generation_repeat", subject=subject, attempt=attempt)
                continue
            return SuppliedQuestion(
                question=question,
                fingerprint=fingerprint,
                source=QUESTION_SOURCE_GENERATED,
            )
        return None
