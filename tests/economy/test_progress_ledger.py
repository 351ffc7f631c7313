from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

from app.economy.progress import service as progress_service
from app.economy.progress.service import ProgressLedger
from app.economy.progress.types import MatchKind, MatchOutcome
from app.game.errors import ParticipantNotFoundError

UTC = timezone.utc
NOW_UTC = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class _FakeSession:
    def __init__(self) -> None:
        self.flush_calls = 0

    async def flush(self) -> None:
        self.flush_calls += 1


def _user(**overrides) -> SimpleNamespace:
    values = {
        "id": 7,
        "points": 120,
        "xp": 40,
        "level": 2,
        "wins": 3,
        "losses": 1,
        "draws": 0,
        "current_streak": 2,
        "best_streak": 2,
        "loss_streak": 0,
        "streak_shield": False,
        "version": 0,
        "updated_at": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def mastery_store(monkeypatch) -> dict[tuple[int, str, str], SimpleNamespace]:
    store: dict[tuple[int, str, str], SimpleNamespace] = {}
    attempt_keys: set[tuple[int, object, str]] = set()

    async def _get_or_create_for_update(session, *, user_id, subject, subtopic, now_utc):
        key = (user_id, subject, subtopic)
        if key not in store:
            store[key] = SimpleNamespace(
                attempts=0,
                correct=0,
                mastery=0.0,
                last_seen_at=None,
                updated_at=now_utc,
            )
        return store[key]

    async def _list_mastery_values_for_subject(session, *, user_id, subject):
        return [row.mastery for (uid, subj, _), row in store.items() if uid == user_id and subj == subject]

    async def _try_create(session, *, user_id, match_id, question_id, **kwargs):
        key = (user_id, match_id, question_id)
        if key in attempt_keys:
            return None
        attempt_keys.add(key)
        return len(attempt_keys)

    monkeypatch.setattr(
        progress_service.SubjectMasteryRepo,
        "get_or_create_for_update",
        _get_or_create_for_update,
    )
    monkeypatch.setattr(
        progress_service.SubjectMasteryRepo,
        "list_mastery_values_for_subject",
        _list_mastery_values_for_subject,
    )
    monkeypatch.setattr(progress_service.AttemptRecordsRepo, "try_create", _try_create)
    return store


async def _record(session, *, match_id, question_id: str, is_correct: bool, subtopic: str = "Negligence"):
    return await ProgressLedger.record_attempt(
        session,
        participant_id=7,
        match_id=match_id,
        question_id=question_id,
        subject="Torts",
        subtopic=subtopic,
        difficulty=0,
        is_correct=is_correct,
        response_ms=4200,
        answered_at=NOW_UTC,
    )


@pytest.mark.asyncio
async def test_record_attempt_updates_mastery_and_counts(mastery_store) -> None:
    session = _FakeSession()
    match_id = uuid4()

    delta = await _record(session, match_id=match_id, question_id="q1", is_correct=True)

    assert delta is not None
    assert delta.mastery_before == 0.0
    assert delta.mastery_after == pytest.approx(2.4)
    assert delta.xp_gained == 12
    assert delta.attempts == 1
    assert delta.correct == 1
    assert delta.accuracy == 100
    row = mastery_store[(7, "Torts", "Negligence")]
    assert row.last_seen_at == NOW_UTC
    assert session.flush_calls == 1


@pytest.mark.asyncio
async def test_record_attempt_is_idempotent_per_question(mastery_store) -> None:
    session = _FakeSession()
    match_id = uuid4()

    first = await _record(session, match_id=match_id, question_id="q1", is_correct=True)
    replay = await _record(session, match_id=match_id, question_id="q1", is_correct=True)

    assert first is not None
    assert replay is None
    row = mastery_store[(7, "Torts", "Negligence")]
    assert row.attempts == 1
    assert row.mastery == pytest.approx(2.4)


@pytest.mark.asyncio
async def test_subject_mastery_averages_subtopics(mastery_store) -> None:
    session = _FakeSession()
    match_id = uuid4()

    await _record(session, match_id=match_id, question_id="q1", is_correct=True, subtopic="Negligence")
    delta = await _record(session, match_id=match_id, question_id="q2", is_correct=False, subtopic="Battery")

    assert delta is not None
    assert delta.mastery_after == 0.0
    assert delta.xp_gained == 3
    assert delta.subject_mastery == pytest.approx(1.2)


@pytest.mark.asyncio
async def test_settle_match_applies_once(monkeypatch) -> None:
    user = _user()
    settled_keys: set[tuple[int, object]] = set()

    async def _get_by_id_for_update(session, user_id):
        return user

    async def _try_create(session, *, user_id, match_id, **kwargs):
        if (user_id, match_id) in settled_keys:
            return None
        settled_keys.add((user_id, match_id))
        return 1

    monkeypatch.setattr(progress_service.UsersRepo, "get_by_id_for_update", _get_by_id_for_update)
    monkeypatch.setattr(progress_service.MatchSettlementsRepo, "try_create", _try_create)
    session = _FakeSession()
    match_id = uuid4()

    result = await ProgressLedger.settle_match(
        session,
        participant_id=7,
        match_id=match_id,
        match_kind=MatchKind.LIVE,
        outcome=MatchOutcome.WIN,
        correct_count=6,
        now_utc=NOW_UTC,
    )
    replay = await ProgressLedger.settle_match(
        session,
        participant_id=7,
        match_id=match_id,
        match_kind=MatchKind.LIVE,
        outcome=MatchOutcome.WIN,
        correct_count=6,
        now_utc=NOW_UTC,
    )

    assert result is not None
    assert result.streak_bonus == 5
    assert result.shield_earned is True
    assert result.points_after == 120 + 30 + 25 + 5
    assert replay is None
    assert user.points == 180
    assert user.current_streak == 3
    assert user.streak_shield is True
    assert user.version == 1
    assert user.updated_at == NOW_UTC


@pytest.mark.asyncio
async def test_settle_match_unknown_participant(monkeypatch) -> None:
    async def _get_by_id_for_update(session, user_id):
        return None

    monkeypatch.setattr(progress_service.UsersRepo, "get_by_id_for_update", _get_by_id_for_update)

    with pytest.raises(ParticipantNotFoundError):
        await ProgressLedger.settle_match(
            _FakeSession(),
            participant_id=404,
            match_id=uuid4(),
            match_kind=MatchKind.ASYNC,
            outcome=MatchOutcome.DRAW,
            correct_count=0,
            now_utc=NOW_UTC,
        )
