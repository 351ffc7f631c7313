from __future__ import annotations

import hashlib
import re

from app.game.questions.types import QuizQuestion

OPTIONS_COUNT = 4
MIN_OPTION_LENGTH = 6
MIN_TEXT_LENGTH = 20

_LABEL_PREFIX_RE = re.compile(r"^\s*\(?[A-Da-d][\)\].:\-]\s*")
_WHITESPACE_RE = re.compile(r"\s+")


class QuestionValidationError(ValueError):
    pass


def strip_option_label(option: str) -> str:
    return _LABEL_PREFIX_RE.sub("", str(option or "")).strip()


def has_label_prefix(option: str) -> bool:
    return _LABEL_PREFIX_RE.match(option) is not None


def question_fingerprint(text: str) -> str:
    normalized = _WHITESPACE_RE.sub(" ", str(text or "").lower()).strip()
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


def validate_question(question: QuizQuestion) -> QuizQuestion:
    if len(question.options) != OPTIONS_COUNT:
        raise QuestionValidationError("question must have exactly four options")
    if not 0 <= question.correct_option < OPTIONS_COUNT:
        raise QuestionValidationError("correct option index out of range")
    if len(question.text.strip()) < MIN_TEXT_LENGTH:
        raise QuestionValidationError("question text is too short")

    for option in question.options:
        if has_label_prefix(option):
            raise QuestionValidationError(f"option carries a label prefix: {option!r}")
        if len(option.strip()) < MIN_OPTION_LENGTH:
            raise QuestionValidationError(f"option is too short: {option!r}")

    lowered = {option.strip().lower() for option in question.options}
    if len(lowered) != OPTIONS_COUNT:
        raise QuestionValidationError("options must be pairwise distinct")
    return question
