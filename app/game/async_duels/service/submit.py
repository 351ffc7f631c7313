from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.async_match_rounds import AsyncMatchRound
from app.db.models.async_matches import AsyncMatch
from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.economy.progress.service import ProgressLedger
from app.game.async_duels.constants import (
    ASYNC_STATUS_COMPLETED,
    ASYNC_STATUS_PENDING,
    REJECT_ALREADY_ANSWERED,
    REJECT_MALFORMED_CHOICE,
    REJECT_MATCH_CLOSED,
    REJECT_WRONG_ROUND,
    SIDE_INITIATOR,
    SIDE_OPPONENT,
    is_async_open_status,
    other_side,
)
from app.game.async_duels.types import AsyncSubmitResult
from app.game.duels.rules import is_correct_choice, is_valid_choice
from app.game.errors import GenerationUnavailableError, MatchNotFoundError
from app.game.questions.supplier import QuestionSupplier

from .expire import _expire_and_settle
from .internal import (
    _activate_match,
    _append_round,
    _build_snapshot,
    _current_round,
    _has_answered,
    _participant_for_side,
    _record_side_answer,
    _rounds_scored,
    _set_unread,
    _settle_finished_match,
    _side_correct,
    _side_of,
    _touch_match,
)

logger = structlog.get_logger(__name__)


async def _record_round_attempts(
    session: AsyncSession,
    *,
    match: AsyncMatch,
    match_round: AsyncMatchRound,
) -> None:
    for side in (SIDE_INITIATOR, SIDE_OPPONENT):
        answered_at = (
            match_round.initiator_answered_at if side == SIDE_INITIATOR else match_round.opponent_answered_at
        )
        response_ms = (
            match_round.initiator_response_ms if side == SIDE_INITIATOR else match_round.opponent_response_ms
        )
        await ProgressLedger.record_attempt(
            session,
            participant_id=_participant_for_side(match, side),
            match_id=match.id,
            question_id=match_round.question_id,
            subject=match.subject,
            subtopic=match_round.topic,
            difficulty=match_round.difficulty,
            is_correct=bool(_side_correct(match_round, side)),
            response_ms=response_ms or 0,
            answered_at=answered_at or match_round.issued_at,
        )


def _score_round(match: AsyncMatch, match_round: AsyncMatchRound, *, now_utc: datetime) -> None:
    if match_round.initiator_correct:
        match.initiator_score += 1
    if match_round.opponent_correct:
        match.opponent_score += 1
    match_round.scored_at = now_utc


def _complete_match(match: AsyncMatch, *, now_utc: datetime) -> None:
    match.status = ASYNC_STATUS_COMPLETED
    match.completed_at = now_utc
    match.initiator_unread = True
    match.opponent_unread = True
    if match.initiator_score > match.opponent_score:
        match.winner_user_id = match.initiator_user_id
    elif match.opponent_score > match.initiator_score:
        match.winner_user_id = match.opponent_user_id
    else:
        match.winner_user_id = None


async def submit_answer(
    session: AsyncSession,
    *,
    match_id: UUID,
    participant_id: int,
    choice: object,
    client_response_ms: int | None,
    supplier: QuestionSupplier,
    now_utc: datetime,
    round_no: int | None = None,
) -> AsyncSubmitResult:
    """Records one side's answer to the open round of an async match.

    The row lock on the match is the exclusive region for the whole call. When
    the second side answers, the round is scored and either the next round is
    appended or the match completes; round k+1 never exists before round k is
    scored for both sides.
    """
    match = await AsyncMatchesRepo.get_by_id_for_update(session, match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    side = _side_of(match, participant_id)
    rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match.id)
    current_round = _current_round(rounds, match)

    def _rejected(reason: str) -> AsyncSubmitResult:
        logger.info(
            "async_duel_answer_rejected",
            match_id=str(match.id),
            participant_id=participant_id,
            reason=reason,
            current_round=match.current_round,
        )
        return AsyncSubmitResult(
            accepted=False,
            reason=reason,
            round_no=match.current_round,
            snapshot=_build_snapshot(match, rounds, participant_id=participant_id),
        )

    if await _expire_and_settle(session, match=match, rounds=rounds, now_utc=now_utc):
        return _rejected(REJECT_MATCH_CLOSED)
    if not is_async_open_status(match.status):
        return _rejected(REJECT_MATCH_CLOSED)
    if not isinstance(choice, int) or not is_valid_choice(choice):
        return _rejected(REJECT_MALFORMED_CHOICE)
    if current_round is None or (round_no is not None and round_no != match.current_round):
        return _rejected(REJECT_WRONG_ROUND)
    if _has_answered(current_round, side):
        return _rejected(REJECT_ALREADY_ANSWERED)

    if match.status == ASYNC_STATUS_PENDING and side == SIDE_OPPONENT:
        _activate_match(match, now_utc=now_utc)
        logger.info("async_duel_accepted", match_id=str(match.id), participant_id=participant_id, implicit=True)

    is_correct = is_correct_choice(choice, current_round.correct_option)
    _record_side_answer(
        current_round,
        side,
        choice=choice,
        is_correct=is_correct,
        client_response_ms=client_response_ms,
        answered_at=now_utc,
    )
    _set_unread(match, side, False)
    _set_unread(match, other_side(side), True)
    _touch_match(match, now_utc=now_utc)

    round_scored = False
    match_finished = False
    if _has_answered(current_round, other_side(side)):
        _score_round(match, current_round, now_utc=now_utc)
        await _record_round_attempts(session, match=match, match_round=current_round)
        round_scored = True
        logger.info(
            "async_duel_round_scored",
            match_id=str(match.id),
            round_no=current_round.round_no,
            initiator_score=match.initiator_score,
            opponent_score=match.opponent_score,
        )

        if current_round.round_no >= match.total_rounds:
            match_finished = True
        else:
            try:
                next_round = await _append_round(
                    session,
                    match=match,
                    round_no=current_round.round_no + 1,
                    supplier=supplier,
                    seen_fingerprints={item.fingerprint for item in rounds},
                    now_utc=now_utc,
                )
            except GenerationUnavailableError:
                logger.warning(
                    "async_duel_aborted_generation_unavailable",
                    match_id=str(match.id),
                    round_no=current_round.round_no + 1,
                )
                match_finished = True
            else:
                rounds.append(next_round)
                match.current_round = next_round.round_no

        if match_finished:
            _complete_match(match, now_utc=now_utc)
            await _settle_finished_match(
                session,
                match=match,
                rounds_scored=_rounds_scored(rounds),
                now_utc=now_utc,
            )
            logger.info(
                "async_duel_completed",
                match_id=str(match.id),
                winner_user_id=match.winner_user_id,
                rounds_scored=_rounds_scored(rounds),
            )

    await session.flush()
    return AsyncSubmitResult(
        accepted=True,
        round_no=current_round.round_no,
        is_correct=is_correct,
        round_scored=round_scored,
        match_finished=match_finished,
        snapshot=_build_snapshot(match, rounds, participant_id=participant_id),
    )
