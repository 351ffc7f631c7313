from __future__ import annotations

import random

from app.game.errors import UnknownSubjectError

SUBJECTS: tuple[str, ...] = (
    "Civil Procedure",
    "Constitutional Law",
    "Contracts",
    "Criminal Law",
    "Evidence",
    "Property",
    "Torts",
)
MIXED_SUBJECT = "Mixed Questions"

_SUBJECTS_BY_KEY = {subject.lower(): subject for subject in SUBJECTS}
_SUBJECT_ALIASES = {
    "civ pro": "Civil Procedure",
    "con law": "Constitutional Law",
    "crim law": "Criminal Law",
    "criminal law/procedure": "Criminal Law",
    "real property": "Property",
}


def normalize_subject(subject: str, *, rng: random.Random | None = None) -> str:
    key = " ".join(str(subject or "").split()).lower()
    if key in {"", MIXED_SUBJECT.lower(), "mixed"}:
        return (rng or random).choice(SUBJECTS)
    resolved = _SUBJECTS_BY_KEY.get(key) or _SUBJECT_ALIASES.get(key)
    if resolved is None:
        raise UnknownSubjectError(subject)
    return resolved
