from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.async_match_rounds import AsyncMatchRound
from app.db.models.async_matches import AsyncMatch
from app.db.repo.async_matches_repo import AsyncMatchesRepo

from .internal import _current_round, _expire_match_if_due, _rounds_scored, _settle_finished_match

logger = structlog.get_logger(__name__)


async def _expire_and_settle(
    session: AsyncSession,
    *,
    match: AsyncMatch,
    rounds: list[AsyncMatchRound],
    now_utc: datetime,
) -> bool:
    if not _expire_match_if_due(
        match=match,
        current_round=_current_round(rounds, match),
        now_utc=now_utc,
    ):
        return False
    await _settle_finished_match(
        session,
        match=match,
        rounds_scored=_rounds_scored(rounds),
        now_utc=now_utc,
    )
    logger.info(
        "async_duel_expired",
        match_id=str(match.id),
        current_round=match.current_round,
        winner_user_id=match.winner_user_id,
    )
    return True


async def expire_due_matches(
    session: AsyncSession,
    *,
    now_utc: datetime,
    batch_size: int,
) -> dict[str, int]:
    matches = await AsyncMatchesRepo.list_due_for_expire_for_update(
        session,
        now_utc=now_utc,
        limit=batch_size,
    )
    expired_total = 0
    with_winner_total = 0
    for match in matches:
        rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match.id)
        if await _expire_and_settle(session, match=match, rounds=rounds, now_utc=now_utc):
            expired_total += 1
            if match.winner_user_id is not None:
                with_winner_total += 1
    return {
        "examined_total": len(matches),
        "expired_total": expired_total,
        "with_winner_total": with_winner_total,
    }
