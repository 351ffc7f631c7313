from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.async_match_rounds import AsyncMatchRound
from app.db.models.async_matches import AsyncMatch
from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.economy.progress.rules import resolve_outcome
from app.economy.progress.service import ProgressLedger
from app.economy.progress.types import MatchKind, MatchOutcome, MatchResultDelta
from app.game.async_duels.constants import (
    ASYNC_STATUS_ACTIVE,
    ASYNC_STATUS_EXPIRED,
    ASYNC_STATUS_RESIGNED,
    SIDE_INITIATOR,
    SIDE_OPPONENT,
    is_async_open_status,
    other_side,
)
from app.game.async_duels.types import AsyncMatchSnapshot, AsyncRoundView
from app.game.errors import MatchAccessError
from app.game.questions.supplier import QuestionSupplier
from app.game.questions.types import QuestionView, QuizQuestion

from .constants import ASYNC_MATCH_EXPIRY_HOURS, ASYNC_MAX_ROUND_DIFFICULTY

logger = structlog.get_logger(__name__)


def _async_round_difficulty(round_no: int) -> int:
    return min(max(0, round_no - 1) // 2, ASYNC_MAX_ROUND_DIFFICULTY)


def _match_expires_at(*, now_utc: datetime) -> datetime:
    return now_utc + timedelta(hours=ASYNC_MATCH_EXPIRY_HOURS)


def _touch_match(match: AsyncMatch, *, now_utc: datetime) -> None:
    match.last_activity_at = now_utc
    match.expires_at = _match_expires_at(now_utc=now_utc)


def _side_of(match: AsyncMatch, participant_id: int) -> str:
    if match.initiator_user_id == participant_id:
        return SIDE_INITIATOR
    if match.opponent_user_id == participant_id:
        return SIDE_OPPONENT
    raise MatchAccessError(participant_id)


def _participant_for_side(match: AsyncMatch, side: str) -> int:
    return match.initiator_user_id if side == SIDE_INITIATOR else match.opponent_user_id


def _score_for_side(match: AsyncMatch, side: str) -> int:
    return match.initiator_score if side == SIDE_INITIATOR else match.opponent_score


def _set_unread(match: AsyncMatch, side: str, value: bool) -> None:
    if side == SIDE_INITIATOR:
        match.initiator_unread = value
    else:
        match.opponent_unread = value


def _unread_for_side(match: AsyncMatch, side: str) -> bool:
    return match.initiator_unread if side == SIDE_INITIATOR else match.opponent_unread


def _side_choice(match_round: AsyncMatchRound, side: str) -> int | None:
    return match_round.initiator_choice if side == SIDE_INITIATOR else match_round.opponent_choice


def _side_correct(match_round: AsyncMatchRound, side: str) -> bool | None:
    return match_round.initiator_correct if side == SIDE_INITIATOR else match_round.opponent_correct


def _has_answered(match_round: AsyncMatchRound | None, side: str) -> bool:
    return match_round is not None and _side_choice(match_round, side) is not None


def _record_side_answer(
    match_round: AsyncMatchRound,
    side: str,
    *,
    choice: int,
    is_correct: bool,
    answered_at: datetime,
    client_response_ms: int | None,
) -> None:
    # Server-measured from issue time; the client value is stored as reported.
    response_ms = max(0, int((answered_at - match_round.issued_at).total_seconds() * 1000))
    if side == SIDE_INITIATOR:
        match_round.initiator_choice = choice
        match_round.initiator_correct = is_correct
        match_round.initiator_response_ms = response_ms
        match_round.initiator_client_response_ms = client_response_ms
        match_round.initiator_answered_at = answered_at
    else:
        match_round.opponent_choice = choice
        match_round.opponent_correct = is_correct
        match_round.opponent_response_ms = response_ms
        match_round.opponent_client_response_ms = client_response_ms
        match_round.opponent_answered_at = answered_at


def _question_for_round(match_round: AsyncMatchRound) -> QuizQuestion:
    return QuizQuestion.from_payload(match_round.question_payload)


def _current_round(rounds: list[AsyncMatchRound], match: AsyncMatch) -> AsyncMatchRound | None:
    for match_round in rounds:
        if match_round.round_no == match.current_round:
            return match_round
    return None


async def _append_round(
    session: AsyncSession,
    *,
    match: AsyncMatch,
    round_no: int,
    supplier: QuestionSupplier,
    seen_fingerprints: set[str],
    now_utc: datetime,
) -> AsyncMatchRound:
    supplied = await supplier.next_question(
        match.subject,
        difficulty=_async_round_difficulty(round_no),
        seen_fingerprints=seen_fingerprints,
        selection_seed=f"{match.id}:{round_no}",
    )
    question = supplied.question
    match_round = AsyncMatchRound(
        match_id=match.id,
        round_no=round_no,
        question_id=question.question_id,
        fingerprint=supplied.fingerprint,
        topic=question.topic,
        difficulty=question.difficulty,
        correct_option=question.correct_option,
        question_payload=question.to_payload(),
        issued_at=now_utc,
    )
    await AsyncMatchesRepo.add_round(session, match_round=match_round)
    logger.info(
        "async_duel_round_issued",
        match_id=str(match.id),
        round_no=round_no,
        question_id=question.question_id,
        source=supplied.source,
    )
    return match_round


def _expire_match_if_due(
    *,
    match: AsyncMatch,
    current_round: AsyncMatchRound | None,
    now_utc: datetime,
) -> bool:
    if not is_async_open_status(match.status):
        return False
    if match.expires_at > now_utc:
        return False

    # Pending matches follow the same rule: the initiator may already have
    # answered round 1 while the opponent never moved.
    initiator_moved = _has_answered(current_round, SIDE_INITIATOR)
    opponent_moved = _has_answered(current_round, SIDE_OPPONENT)
    if initiator_moved and not opponent_moved:
        match.winner_user_id = match.initiator_user_id
    elif opponent_moved and not initiator_moved:
        match.winner_user_id = match.opponent_user_id
    elif match.initiator_score != match.opponent_score:
        match.winner_user_id = (
            match.initiator_user_id
            if match.initiator_score > match.opponent_score
            else match.opponent_user_id
        )
    else:
        match.winner_user_id = None
    match.status = ASYNC_STATUS_EXPIRED
    match.completed_at = now_utc
    match.initiator_unread = True
    match.opponent_unread = True
    return True


def _final_outcomes(match: AsyncMatch) -> dict[int, MatchOutcome]:
    initiator_id = match.initiator_user_id
    opponent_id = match.opponent_user_id
    if match.status == ASYNC_STATUS_RESIGNED and match.resigned_by_user_id is not None:
        loser_id = match.resigned_by_user_id
        return {
            initiator_id: MatchOutcome.LOSS if loser_id == initiator_id else MatchOutcome.WIN,
            opponent_id: MatchOutcome.LOSS if loser_id == opponent_id else MatchOutcome.WIN,
        }
    if match.winner_user_id is not None:
        return {
            initiator_id: MatchOutcome.WIN if match.winner_user_id == initiator_id else MatchOutcome.LOSS,
            opponent_id: MatchOutcome.WIN if match.winner_user_id == opponent_id else MatchOutcome.LOSS,
        }
    return {
        initiator_id: resolve_outcome(match.initiator_score, match.opponent_score),
        opponent_id: resolve_outcome(match.opponent_score, match.initiator_score),
    }


def _should_settle(match: AsyncMatch, *, rounds_scored: int) -> bool:
    # Only an expiry where nobody ever answered goes unsettled.
    if match.status == ASYNC_STATUS_EXPIRED and match.winner_user_id is None:
        return rounds_scored > 0
    return True


async def _settle_finished_match(
    session: AsyncSession,
    *,
    match: AsyncMatch,
    rounds_scored: int,
    now_utc: datetime,
) -> list[MatchResultDelta]:
    if not _should_settle(match, rounds_scored=rounds_scored):
        logger.info("async_duel_settlement_skipped", match_id=str(match.id), status=match.status)
        return []

    outcomes = _final_outcomes(match)
    if match.winner_user_id is None:
        winner_ids = [pid for pid, outcome in outcomes.items() if outcome == MatchOutcome.WIN]
        match.winner_user_id = winner_ids[0] if winner_ids else None

    deltas: list[MatchResultDelta] = []
    for side in (SIDE_INITIATOR, SIDE_OPPONENT):
        participant_id = _participant_for_side(match, side)
        delta = await ProgressLedger.settle_match(
            session,
            participant_id=participant_id,
            match_id=match.id,
            match_kind=MatchKind.ASYNC,
            outcome=outcomes[participant_id],
            correct_count=_score_for_side(match, side),
            now_utc=now_utc,
        )
        if delta is not None:
            deltas.append(delta)
    logger.info(
        "async_duel_settled",
        match_id=str(match.id),
        status=match.status,
        winner_user_id=match.winner_user_id,
        initiator_score=match.initiator_score,
        opponent_score=match.opponent_score,
    )
    return deltas


def _build_round_view(
    match_round: AsyncMatchRound,
    *,
    side: str,
    total_rounds: int,
) -> AsyncRoundView:
    question = _question_for_round(match_round)
    view = QuestionView.from_question(
        question,
        round_number=match_round.round_no,
        total_rounds=total_rounds,
    )
    scored = match_round.scored_at is not None
    opponent = other_side(side)
    if not scored:
        return AsyncRoundView(
            round_no=match_round.round_no,
            question=view.to_payload(),
            scored=False,
            your_choice=_side_choice(match_round, side),
            your_correct=None,
            opponent_answered=_has_answered(match_round, opponent),
        )
    return AsyncRoundView(
        round_no=match_round.round_no,
        question=view.to_payload(),
        scored=True,
        your_choice=_side_choice(match_round, side),
        your_correct=_side_correct(match_round, side),
        opponent_answered=True,
        opponent_choice=_side_choice(match_round, opponent),
        opponent_correct=_side_correct(match_round, opponent),
        correct_option=match_round.correct_option,
        explanation=question.explanation or None,
    )


def _is_your_turn(match: AsyncMatch, current_round: AsyncMatchRound | None, side: str) -> bool:
    if not is_async_open_status(match.status):
        return False
    if current_round is None or _has_answered(current_round, side):
        return False
    if match.status == ASYNC_STATUS_ACTIVE:
        return True
    # Pending: the initiator may play round 1 straight away; the opponent's
    # first answer doubles as acceptance.
    return current_round.round_no == 1


def _build_snapshot(
    match: AsyncMatch,
    rounds: list[AsyncMatchRound],
    *,
    participant_id: int,
) -> AsyncMatchSnapshot:
    side = _side_of(match, participant_id)
    opponent = other_side(side)
    current_round = _current_round(rounds, match)
    return AsyncMatchSnapshot(
        match_id=match.id,
        subject=match.subject,
        status=match.status,
        total_rounds=match.total_rounds,
        current_round=match.current_round,
        participant_id=participant_id,
        opponent_id=_participant_for_side(match, opponent),
        is_initiator=side == SIDE_INITIATOR,
        your_score=_score_for_side(match, side),
        opponent_score=_score_for_side(match, opponent),
        your_turn=_is_your_turn(match, current_round, side),
        unread=_unread_for_side(match, side),
        winner_user_id=match.winner_user_id,
        resigned_by_user_id=match.resigned_by_user_id,
        created_at=match.created_at,
        last_activity_at=match.last_activity_at,
        expires_at=match.expires_at,
        completed_at=match.completed_at,
        rounds=[
            _build_round_view(match_round, side=side, total_rounds=match.total_rounds)
            for match_round in sorted(rounds, key=lambda item: item.round_no)
        ],
    )


def _rounds_scored(rounds: list[AsyncMatchRound]) -> int:
    return sum(1 for match_round in rounds if match_round.scored_at is not None)


def _activate_match(match: AsyncMatch, *, now_utc: datetime) -> None:
    match.status = ASYNC_STATUS_ACTIVE
    match.accepted_at = now_utc
    _touch_match(match, now_utc=now_utc)
