from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Header, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError

from app.db.repo.users_repo import UsersRepo
from app.db.session import SessionLocal

from .duel_errors import PARTICIPANT_HEADER

router = APIRouter(prefix="/participants", tags=["participants"])


class ParticipantUpsertRequest(BaseModel):
    external_id: str = Field(min_length=1, max_length=128)
    username: str = Field(min_length=1, max_length=64, pattern=r"^@?[A-Za-z0-9_]+$")
    display_name: str | None = Field(default=None, max_length=128)


class ParticipantResponse(BaseModel):
    participant_id: int
    username: str
    display_name: str | None = None
    points: int
    xp: int
    level: int
    wins: int
    losses: int
    draws: int
    current_streak: int
    best_streak: int
    streak_shield: bool


def _as_response(user) -> ParticipantResponse:
    return ParticipantResponse(
        participant_id=user.id,
        username=user.username,
        display_name=user.display_name,
        points=user.points,
        xp=user.xp,
        level=user.level,
        wins=user.wins,
        losses=user.losses,
        draws=user.draws,
        current_streak=user.current_streak,
        best_streak=user.best_streak,
        streak_shield=user.streak_shield,
    )


@router.post("", response_model=ParticipantResponse)
async def upsert_participant(payload: ParticipantUpsertRequest) -> ParticipantResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            user = await UsersRepo.get_or_create(
                session,
                external_id=payload.external_id,
                username=payload.username.lstrip("@"),
                display_name=payload.display_name,
                now_utc=now_utc,
            )
            return _as_response(user)
    except IntegrityError as exc:
        raise HTTPException(status_code=409, detail={"code": "E_USERNAME_TAKEN"}) from exc


@router.get("/{participant_id}", response_model=ParticipantResponse)
async def get_participant(participant_id: int) -> ParticipantResponse:
    async with SessionLocal() as session:
        user = await UsersRepo.get_by_id(session, participant_id)
        if user is None or user.status != "ACTIVE":
            raise HTTPException(status_code=404, detail={"code": "E_NOT_FOUND"})
        return _as_response(user)


@router.delete("/{participant_id}", status_code=204)
async def deactivate_participant(
    participant_id: int,
    caller_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> Response:
    if caller_id != participant_id:
        raise HTTPException(status_code=403, detail={"code": "E_FORBIDDEN"})
    async with SessionLocal.begin() as session:
        updated = await UsersRepo.deactivate(session, participant_id, datetime.now(timezone.utc))
    if not updated:
        raise HTTPException(status_code=404, detail={"code": "E_NOT_FOUND"})
    return Response(status_code=204)
