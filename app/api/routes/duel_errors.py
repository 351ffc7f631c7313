from __future__ import annotations

from fastapi import HTTPException, Request, WebSocket

from app.game.errors import (
    ChallengeTargetOfflineError,
    DuelEngineError,
    ExpiredError,
    GenerationUnavailableError,
    MatchAccessError,
    MatchRequestCancelledError,
    NotFoundError,
    ParticipantBusyError,
    SelfChallengeError,
    UnknownSubjectError,
)
from app.runtime import DuelRuntime

PARTICIPANT_HEADER = "X-Participant-Id"

_ERROR_CODES: tuple[tuple[type[DuelEngineError], int, str], ...] = (
    (NotFoundError, 404, "E_NOT_FOUND"),
    (ExpiredError, 410, "E_EXPIRED"),
    (MatchAccessError, 403, "E_FORBIDDEN"),
    (UnknownSubjectError, 422, "E_UNKNOWN_SUBJECT"),
    (SelfChallengeError, 422, "E_SELF_CHALLENGE"),
    (ChallengeTargetOfflineError, 409, "E_TARGET_OFFLINE"),
    (ParticipantBusyError, 409, "E_PARTICIPANT_BUSY"),
    (MatchRequestCancelledError, 409, "E_MATCH_REQUEST_CANCELLED"),
    (GenerationUnavailableError, 503, "E_QUESTIONS_UNAVAILABLE"),
)


def error_code_for(exc: DuelEngineError) -> tuple[int, str]:
    for error_type, status_code, code in _ERROR_CODES:
        if isinstance(exc, error_type):
            return status_code, code
    return 400, "E_DUEL_ENGINE"


def as_http_exception(exc: DuelEngineError) -> HTTPException:
    status_code, code = error_code_for(exc)
    return HTTPException(status_code=status_code, detail={"code": code})


def get_runtime(request: Request) -> DuelRuntime:
    return request.app.state.runtime


def get_ws_runtime(websocket: WebSocket) -> DuelRuntime:
    return websocket.app.state.runtime
