from __future__ import annotations

import asyncio
import json
from typing import Any

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.game.errors import (
    DuelEngineError,
    DuelSessionNotFoundError,
    MatchRequestCancelledError,
    ParticipantNotFoundError,
)
from app.game.participants import ParticipantProfile, load_participant_profile
from app.runtime import DuelRuntime

from .duel_errors import error_code_for, get_ws_runtime

router = APIRouter(tags=["duels"])
logger = structlog.get_logger(__name__)

WS_CLOSE_UNKNOWN_PARTICIPANT = 4404


class DuelConnection:
    def __init__(self, *, runtime: DuelRuntime, profile: ParticipantProfile) -> None:
        self._runtime = runtime
        self._profile = profile
        self._match_task: asyncio.Task[None] | None = None

    @property
    def participant_id(self) -> int:
        return self._profile.participant_id

    async def send(self, event_type: str, payload: dict[str, Any]) -> None:
        await self._runtime.hub.push(self.participant_id, event_type, payload)

    async def send_error(self, code: str, message: str | None = None) -> None:
        payload: dict[str, Any] = {"code": code}
        if message:
            payload["message"] = message
        await self.send("error", payload)

    async def handle(self, message: Any) -> None:
        if not isinstance(message, dict) or not isinstance(message.get("type"), str):
            await self.send_error("E_BAD_MESSAGE")
            return
        payload = message.get("payload") or {}
        if not isinstance(payload, dict):
            await self.send_error("E_BAD_MESSAGE")
            return

        handler = self._handlers().get(message["type"])
        if handler is None:
            await self.send_error("E_UNKNOWN_MESSAGE", message["type"])
            return
        try:
            await handler(payload)
        except DuelEngineError as exc:
            _, code = error_code_for(exc)
            await self.send_error(code)

    def _handlers(self):
        return {
            "ping": self._on_ping,
            "match:request": self._on_match_request,
            "match:cancel": self._on_match_cancel,
            "duel:answer": self._on_duel_answer,
            "challenge:create": self._on_challenge_create,
            "challenge:respond": self._on_challenge_respond,
        }

    async def _on_ping(self, payload: dict[str, Any]) -> None:
        await self.send("pong", {})

    async def _on_match_request(self, payload: dict[str, Any]) -> None:
        if self._match_task is not None and not self._match_task.done():
            await self.send_error("E_ALREADY_QUEUED")
            return
        self._profile = await load_participant_profile(self.participant_id)
        await self._runtime.hub.update_profile(self._profile)
        subject = str(payload.get("subject") or "")
        self._match_task = asyncio.create_task(self._run_match_request(subject))

    async def _run_match_request(self, subject: str) -> None:
        try:
            await self._runtime.matchmaker.request_match(self._profile, subject)
        except MatchRequestCancelledError:
            await self.send("match:cancelled", {})
        except DuelEngineError as exc:
            _, code = error_code_for(exc)
            await self.send_error(code)
        except Exception:
            logger.exception("match_request_failed", participant_id=self.participant_id)
            await self.send_error("E_INTERNAL")

    async def _on_match_cancel(self, payload: dict[str, Any]) -> None:
        if not await self._runtime.matchmaker.cancel_request(self.participant_id):
            await self.send("match:cancelled", {})

    async def _on_duel_answer(self, payload: dict[str, Any]) -> None:
        session = self._runtime.registry.session_for_participant(self.participant_id)
        if session is None:
            raise DuelSessionNotFoundError(self.participant_id)
        round_number = payload.get("round")
        client_response_ms = payload.get("client_response_ms")
        ack = await session.submit_answer(
            self.participant_id,
            payload.get("choice"),  # type: ignore[arg-type]
            client_response_ms=client_response_ms if isinstance(client_response_ms, int) else None,
            round_number=round_number if isinstance(round_number, int) else None,
        )
        await self.send("duel:ack", ack.to_payload())

    async def _on_challenge_create(self, payload: dict[str, Any]) -> None:
        invitation = await self._runtime.challenges.create_challenge(
            self._profile,
            str(payload.get("username") or ""),
            payload.get("subject"),
        )
        await self.send("challenge:sent", invitation.to_payload())

    async def _on_challenge_respond(self, payload: dict[str, Any]) -> None:
        await self._runtime.challenges.respond_to_challenge(
            str(payload.get("challenge_id") or ""),
            self.participant_id,
            accept=bool(payload.get("accept")),
        )

    async def close(self) -> None:
        if self._match_task is not None and not self._match_task.done():
            self._match_task.cancel()
            await asyncio.gather(self._match_task, return_exceptions=True)
        await self._runtime.matchmaker.cancel_request(self.participant_id)
        await self._runtime.challenges.withdraw_participant(self.participant_id)
        forfeited = await self._runtime.registry.forfeit_participant(self.participant_id)
        if forfeited:
            logger.info("live_duel_forfeit_on_disconnect", participant_id=self.participant_id)


@router.websocket("/ws/duel")
async def duel_socket(websocket: WebSocket, participant_id: int = Query(gt=0)) -> None:
    runtime = get_ws_runtime(websocket)
    try:
        profile = await load_participant_profile(participant_id)
    except ParticipantNotFoundError:
        await websocket.close(code=WS_CLOSE_UNKNOWN_PARTICIPANT)
        return

    await websocket.accept()
    await runtime.hub.register(profile, websocket)
    connection = DuelConnection(runtime=runtime, profile=profile)
    await runtime.standings.send_current(profile)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                await connection.send_error("E_BAD_MESSAGE")
                continue
            await connection.handle(message)
    except WebSocketDisconnect:
        pass
    finally:
        await connection.close()
        await runtime.hub.unregister(participant_id, websocket)
