from __future__ import annotations

import random
from datetime import datetime
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models.async_matches import AsyncMatch
from app.db.repo.async_matches_repo import AsyncMatchesRepo
from app.db.repo.users_repo import UsersRepo
from app.game.async_duels.constants import ASYNC_STATUS_PENDING
from app.game.async_duels.types import AsyncMatchSnapshot
from app.game.errors import ParticipantNotFoundError, SelfChallengeError
from app.game.questions.subjects import normalize_subject
from app.game.questions.supplier import QuestionSupplier

from .constants import ASYNC_TOTAL_ROUNDS
from .expire import _expire_and_settle
from .internal import _append_round, _build_snapshot, _match_expires_at

logger = structlog.get_logger(__name__)


async def create_match(
    session: AsyncSession,
    *,
    initiator_user_id: int,
    opponent_username: str,
    subject: str | None,
    supplier: QuestionSupplier,
    now_utc: datetime,
    total_rounds: int = ASYNC_TOTAL_ROUNDS,
    rng: random.Random | None = None,
) -> AsyncMatchSnapshot:
    resolved_subject = normalize_subject(subject or "", rng=rng)
    initiator = await UsersRepo.get_by_id_for_update(session, initiator_user_id)
    if initiator is None or initiator.status != "ACTIVE":
        raise ParticipantNotFoundError(initiator_user_id)
    opponent = await UsersRepo.get_by_username(session, opponent_username)
    if opponent is None or opponent.status != "ACTIVE":
        raise ParticipantNotFoundError(opponent_username)
    if opponent.id == initiator.id:
        raise SelfChallengeError(initiator_user_id)

    existing = await AsyncMatchesRepo.find_open_between(
        session,
        first_user_id=initiator.id,
        second_user_id=opponent.id,
    )
    if existing is not None:
        existing = await AsyncMatchesRepo.get_by_id_for_update(session, existing.id)
    if existing is not None:
        rounds = await AsyncMatchesRepo.list_rounds(session, match_id=existing.id)
        if not await _expire_and_settle(session, match=existing, rounds=rounds, now_utc=now_utc):
            logger.info(
                "async_duel_create_reused_open_match",
                match_id=str(existing.id),
                initiator_user_id=initiator.id,
                opponent_user_id=opponent.id,
            )
            return _build_snapshot(existing, rounds, participant_id=initiator.id)

    match = AsyncMatch(
        id=uuid4(),
        initiator_user_id=initiator.id,
        opponent_user_id=opponent.id,
        subject=resolved_subject,
        status=ASYNC_STATUS_PENDING,
        total_rounds=max(1, int(total_rounds)),
        current_round=1,
        initiator_score=0,
        opponent_score=0,
        initiator_unread=False,
        opponent_unread=True,
        created_at=now_utc,
        last_activity_at=now_utc,
        expires_at=_match_expires_at(now_utc=now_utc),
    )
    await AsyncMatchesRepo.create(session, match=match)
    first_round = await _append_round(
        session,
        match=match,
        round_no=1,
        supplier=supplier,
        seen_fingerprints=set(),
        now_utc=now_utc,
    )
    logger.info(
        "async_duel_created",
        match_id=str(match.id),
        initiator_user_id=initiator.id,
        opponent_user_id=opponent.id,
        subject=resolved_subject,
        total_rounds=match.total_rounds,
    )
    return _build_snapshot(match, [first_round], participant_id=initiator.id)
