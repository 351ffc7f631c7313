from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.db.repo.match_settlements_repo import MatchSettlementsRepo
from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal
from app.game.async_duels.service import ASYNC_MATCH_EXPIRY_HOURS, AsyncDuelService
from tests.game.duel_fixtures import static_supplier
from tests.integration.participants_fixtures import UTC, _create_user


async def _correct_option(match_id, round_no: int) -> int:
    async with SessionLocal.begin() as session:
        match_round = await AsyncMatchesRepo.get_round(session, match_id=match_id, round_no=round_no)
        assert match_round is not None
        return match_round.correct_option


async def _submit(match_id, participant_id: int, choice: int, now_utc: datetime):
    async with SessionLocal.begin() as session:
        return await AsyncDuelService.submit_answer(
            session,
            match_id=match_id,
            participant_id=participant_id,
            choice=choice,
            client_response_ms=2500,
            supplier=static_supplier(),
            now_utc=now_utc,
        )


@pytest.mark.asyncio
async def test_async_duel_plays_to_completion_and_settles_once() -> None:
    now_utc = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    alice_id = await _create_user("alice", now_utc=now_utc)
    bob_id = await _create_user("bob", now_utc=now_utc)

    async with SessionLocal.begin() as session:
        created = await AsyncDuelService.create_match(
            session,
            initiator_user_id=alice_id,
            opponent_username="Bob",
            subject="Contracts",
            supplier=static_supplier(),
            now_utc=now_utc,
            total_rounds=2,
        )
    match_id = created.match_id

    for round_no in (1, 2):
        correct = await _correct_option(match_id, round_no)
        await _submit(match_id, alice_id, correct, now_utc + timedelta(minutes=round_no))
        result = await _submit(match_id, bob_id, (correct + 1) % 4, now_utc + timedelta(hours=round_no))
        assert result.round_scored is True

    assert result.match_finished is True
    assert result.snapshot.status == "COMPLETED"
    assert result.snapshot.winner_user_id == alice_id

    async with SessionLocal.begin() as session:
        rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match_id)
        alice = await UsersRepo.get_by_id(session, alice_id)
        bob = await UsersRepo.get_by_id(session, bob_id)
        alice_settlement = await MatchSettlementsRepo.get_by_user_match(
            session,
            user_id=alice_id,
            match_id=match_id,
        )

    assert len({match_round.fingerprint for match_round in rounds}) == 2
    assert alice is not None and bob is not None
    assert (alice.wins, bob.losses) == (1, 1)
    assert alice_settlement is not None
    assert alice_settlement.match_kind == "ASYNC"

    late = await _submit(match_id, bob_id, 0, now_utc + timedelta(hours=3))
    assert late.accepted is False
    assert late.reason == "match_closed"


@pytest.mark.asyncio
async def test_expiry_scan_awards_player_who_answered() -> None:
    now_utc = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    alice_id = await _create_user("alice", now_utc=now_utc)
    bob_id = await _create_user("bob", now_utc=now_utc)

    async with SessionLocal.begin() as session:
        created = await AsyncDuelService.create_match(
            session,
            initiator_user_id=alice_id,
            opponent_username="bob",
            subject="Torts",
            supplier=static_supplier(),
            now_utc=now_utc,
        )
    async with SessionLocal.begin() as session:
        await AsyncDuelService.accept_match(
            session,
            match_id=created.match_id,
            participant_id=bob_id,
            now_utc=now_utc,
        )
    await _submit(created.match_id, alice_id, 0, now_utc)

    later = now_utc + timedelta(hours=ASYNC_MATCH_EXPIRY_HOURS, minutes=5)
    async with SessionLocal.begin() as session:
        summary = await AsyncDuelService.expire_due_matches(session, now_utc=later, batch_size=10)

    assert summary == {"examined_total": 1, "expired_total": 1, "with_winner_total": 1}

    async with SessionLocal.begin() as session:
        match = await AsyncMatchesRepo.get_by_id(session, created.match_id)
        bob = await UsersRepo.get_by_id(session, bob_id)

    assert match is not None
    assert match.status == "EXPIRED"
    assert match.winner_user_id == alice_id
    assert bob is not None and bob.losses == 1
