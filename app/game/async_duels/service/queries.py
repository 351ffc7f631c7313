from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.game.async_duels.constants import is_async_open_status, other_side
from app.game.async_duels.types import AsyncInboxItem, AsyncMatchSnapshot
from app.game.errors import MatchNotFoundError

from .constants import ASYNC_INBOX_LIMIT
from .expire import _expire_and_settle
from .internal import (
    _build_snapshot,
    _current_round,
    _is_your_turn,
    _participant_for_side,
    _score_for_side,
    _set_unread,
    _side_of,
    _unread_for_side,
)


async def get_match_for_participant(
    session: AsyncSession,
    *,
    match_id: UUID,
    participant_id: int,
    now_utc: datetime,
) -> AsyncMatchSnapshot:
    match = await AsyncMatchesRepo.get_by_id_for_update(session, match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    _side_of(match, participant_id)
    rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match.id)
    await _expire_and_settle(session, match=match, rounds=rounds, now_utc=now_utc)
    return _build_snapshot(match, rounds, participant_id=participant_id)


async def list_inbox(
    session: AsyncSession,
    *,
    participant_id: int,
    now_utc: datetime,
    limit: int = ASYNC_INBOX_LIMIT,
) -> list[AsyncInboxItem]:
    matches = await AsyncMatchesRepo.list_for_user(session, user_id=participant_id, limit=limit)
    items: list[AsyncInboxItem] = []
    for listed in matches:
        match = listed
        current_round = None
        if is_async_open_status(match.status):
            if match.expires_at <= now_utc:
                locked = await AsyncMatchesRepo.get_by_id_for_update(session, match.id)
                if locked is None:
                    continue
                match = locked
            rounds = await AsyncMatchesRepo.list_rounds(session, match_id=match.id)
            await _expire_and_settle(session, match=match, rounds=rounds, now_utc=now_utc)
            current_round = _current_round(rounds, match)

        side = _side_of(match, participant_id)
        items.append(
            AsyncInboxItem(
                match_id=match.id,
                subject=match.subject,
                status=match.status,
                opponent_id=_participant_for_side(match, other_side(side)),
                your_score=_score_for_side(match, side),
                opponent_score=_score_for_side(match, other_side(side)),
                current_round=match.current_round,
                total_rounds=match.total_rounds,
                your_turn=_is_your_turn(match, current_round, side),
                unread=_unread_for_side(match, side),
                last_activity_at=match.last_activity_at,
                expires_at=match.expires_at,
            )
        )
    items.sort(key=lambda item: item.last_activity_at, reverse=True)
    return items


async def mark_read(
    session: AsyncSession,
    *,
    match_id: UUID,
    participant_id: int,
) -> bool:
    match = await AsyncMatchesRepo.get_by_id_for_update(session, match_id)
    if match is None:
        raise MatchNotFoundError(match_id)
    side = _side_of(match, participant_id)
    was_unread = _unread_for_side(match, side)
    _set_unread(match, side, False)
    return was_unread
