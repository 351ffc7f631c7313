from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.game.async_duels.constants import (
    ASYNC_STATUS_EXPIRED,
    ASYNC_STATUS_PENDING,
    SIDE_OPPONENT,
)
from app.game.async_duels.types import AsyncMatchSnapshot
from app.game.errors import MatchAccessError, MatchExpiredError, MatchNotFoundError

from .expire import _expire_and_settle
from .internal import _activate_match, _build_snapshot, _set_unread, _side_of

logger = structlog.get_logger(__name__)


async def accept_match(
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
    if match.status == ASYNC_STATUS_EXPIRED:
        raise MatchExpiredError(match_id)
    if match.status == ASYNC_STATUS_PENDING:
        if side != SIDE_OPPONENT:
            raise MatchAccessError(participant_id)
        _activate_match(match, now_utc=now_utc)
        _set_unread(match, side, False)
        logger.info("async_duel_accepted", match_id=str(match.id), participant_id=participant_id)
    return _build_snapshot(match, rounds, participant_id=participant_id)
