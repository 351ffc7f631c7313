from __future__ import annotations

from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Header, Request

from app.db.session import SessionLocal
from app.game.async_duels.service import AsyncDuelService
from app.game.errors import DuelEngineError

from .async_duels_models import (
    AsyncAnswerResponse,
    AsyncDuelAnswerRequest,
    AsyncDuelCreateRequest,
    AsyncInboxResponse,
    AsyncMarkReadResponse,
    AsyncMatchResponse,
)
from .duel_errors import PARTICIPANT_HEADER, as_http_exception, get_runtime

router = APIRouter(prefix="/async-duels", tags=["async-duels"])


@router.post("", response_model=AsyncMatchResponse, status_code=201)
async def create_async_duel(
    payload: AsyncDuelCreateRequest,
    request: Request,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncMatchResponse:
    runtime = get_runtime(request)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            snapshot = await AsyncDuelService.create_match(
                session,
                initiator_user_id=participant_id,
                opponent_username=payload.opponent_username,
                subject=payload.subject,
                supplier=runtime.supplier,
                now_utc=now_utc,
                rng=runtime.rng,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    await runtime.hub.push(snapshot.opponent_id, "async:invited", {"match_id": str(snapshot.match_id)})
    return AsyncMatchResponse.model_validate(snapshot.to_payload())


@router.get("", response_model=AsyncInboxResponse)
async def list_async_duels(
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncInboxResponse:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        items = await AsyncDuelService.list_inbox(
            session,
            participant_id=participant_id,
            now_utc=now_utc,
        )
    return AsyncInboxResponse.model_validate({"items": [item.to_payload() for item in items]})


@router.get("/{match_id}", response_model=AsyncMatchResponse)
async def get_async_duel(
    match_id: UUID,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncMatchResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            snapshot = await AsyncDuelService.get_match_for_participant(
                session,
                match_id=match_id,
                participant_id=participant_id,
                now_utc=now_utc,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    return AsyncMatchResponse.model_validate(snapshot.to_payload())


@router.post("/{match_id}/accept", response_model=AsyncMatchResponse)
async def accept_async_duel(
    match_id: UUID,
    request: Request,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncMatchResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            snapshot = await AsyncDuelService.accept_match(
                session,
                match_id=match_id,
                participant_id=participant_id,
                now_utc=now_utc,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    await get_runtime(request).hub.push(
        snapshot.opponent_id,
        "async:accepted",
        {"match_id": str(snapshot.match_id)},
    )
    return AsyncMatchResponse.model_validate(snapshot.to_payload())


@router.post("/{match_id}/answers", response_model=AsyncAnswerResponse)
async def answer_async_duel(
    match_id: UUID,
    payload: AsyncDuelAnswerRequest,
    request: Request,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncAnswerResponse:
    runtime = get_runtime(request)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            result = await AsyncDuelService.submit_answer(
                session,
                match_id=match_id,
                participant_id=participant_id,
                choice=payload.choice,
                client_response_ms=payload.client_response_ms,
                round_no=payload.round,
                supplier=runtime.supplier,
                now_utc=now_utc,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    if result.accepted:
        await runtime.hub.push(
            result.snapshot.opponent_id,
            "async:updated",
            {
                "match_id": str(result.snapshot.match_id),
                "status": result.snapshot.status,
                "current_round": result.snapshot.current_round,
            },
        )
    return AsyncAnswerResponse.model_validate(result.to_payload())


@router.post("/{match_id}/resign", response_model=AsyncMatchResponse)
async def resign_async_duel(
    match_id: UUID,
    request: Request,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncMatchResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            snapshot = await AsyncDuelService.resign_match(
                session,
                match_id=match_id,
                participant_id=participant_id,
                now_utc=now_utc,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    await get_runtime(request).hub.push(
        snapshot.opponent_id,
        "async:updated",
        {"match_id": str(snapshot.match_id), "status": snapshot.status, "current_round": snapshot.current_round},
    )
    return AsyncMatchResponse.model_validate(snapshot.to_payload())


@router.post("/{match_id}/read", response_model=AsyncMarkReadResponse)
async def mark_async_duel_read(
    match_id: UUID,
    participant_id: int = Header(alias=PARTICIPANT_HEADER, gt=0),
) -> AsyncMarkReadResponse:
    try:
        async with SessionLocal.begin() as session:
            was_unread = await AsyncDuelService.mark_read(
                session,
                match_id=match_id,
                participant_id=participant_id,
            )
    except DuelEngineError as exc:
        raise as_http_exception(exc) from exc
    return AsyncMarkReadResponse(match_id=match_id, was_unread=was_unread)
