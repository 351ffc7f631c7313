from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.game.async_duels.constants import ASYNC_STATUS_RESIGNED, is_async_terminal_status, other_side
from app.game.async_duels.types import AsyncMatchSnapshot
from app.game.errors import MatchNotFoundError

from .expire import _expire_and_settle
from .internal import (
    _build_snapshot,
    _participant_for_side,
    _rounds_scored,
    _set_unread,
    _settle_finished_match,
    _side_of,
)

logger = structlog.get_logger(__name__)


async def resign_match(
    session: AsyncSession,
    *,
    match_id: UUID,
    participant_id: int,
    now_utc: datetime,
) -> AsyncMatchSnapshot:
    match = await AsyncMatchesRepo.get_by_id_for_update(session, match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    side = _side_of(match, participant_id)
    rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match.id)

    await _expire_and_settle(session, match=match, rounds=rounds, now_utc=now_utc)
    if is_async_terminal_status(match.status):
        return _build_snapshot(match, rounds, participant_id=participant_id)

    winner_side = other_side(side)
    match.status = ASYNC_STATUS_RESIGNED
    match.resigned_by_user_id = participant_id
    match.winner_user_id = _participant_for_side(match, winner_side)
    match.completed_at = now_utc
    match.last_activity_at = now_utc
    _set_unread(match, side, False)
    _set_unread(match, winner_side, True)
    await _settle_finished_match(
        session,
        match=match,
        rounds_scored=_rounds_scored(rounds),
        now_utc=now_utc,
    )
    logger.info(
        "async_duel_resigned",
        match_id=str(match.id),
        resigned_by_user_id=participant_id,
        winner_user_id=match.winner_user_id,
    )
    return _build_snapshot(match, rounds, participant_id=participant_id)
