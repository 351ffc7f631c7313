from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog

from app.core.clock import DeadlineClock
from app.game.duels.session import LiveDuelSession
from app.game.duels.types import DuelResult, DuelSeat, SubmitAck
from app.game.errors import DuelSessionNotFoundError, ParticipantBusyError
from app.game.push import PushChannel
from app.game.questions.supplier import QuestionSupplier

logger = structlog.get_logger(__name__)

SettlementHook = Callable[[LiveDuelSession, DuelResult], Awaitable[None]]


class LiveDuelRegistry:
    def __init__(
        self,
        *,
        supplier: QuestionSupplier,
        clock: DeadlineClock,
        push: PushChannel,
        total_rounds: int,
        round_seconds: float,
        result_pause_seconds: float = 0.0,
        settlement: SettlementHook | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._supplier = supplier
        self._clock = clock
        self._push = push
        self._total_rounds = total_rounds
        self._round_seconds = round_seconds
        self._result_pause_seconds = result_pause_seconds
        self._settlement = settlement
        self._rng = rng or random.Random()
        self._sessions: dict[UUID, LiveDuelSession] = {}
        self._by_participant: dict[int, UUID] = {}
        self._lock = asyncio.Lock()

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    async def create_session(self, *, subject: str, seats: tuple[DuelSeat, DuelSeat]) -> LiveDuelSession:
        async with self._lock:
            for seat in seats:
                if seat.participant_id in self._by_participant:
                    raise ParticipantBusyError(seat.participant_id)
            session = LiveDuelSession(
                subject=subject,
                seats=seats,
                supplier=self._supplier,
                clock=self._clock,
                push=self._push,
                total_rounds=self._total_rounds,
                round_seconds=self._round_seconds,
                result_pause_seconds=self._result_pause_seconds,
                rng=random.Random(self._rng.random()),
                on_finished=self._on_session_finished,
            )
            self._sessions[session.session_id] = session
            for seat in seats:
                self._by_participant[seat.participant_id] = session.session_id

        for seat in seats:
            if seat.is_bot:
                continue
            opponent = session.opponent_of(seat.participant_id)
            await self._push.push(
                seat.participant_id,
                "duel:start",
                {
                    "session_id": str(session.session_id),
                    "subject": subject,
                    "total_rounds": self._total_rounds,
                    "round_seconds": self._round_seconds,
                    "opponent": opponent.profile.to_payload(),
                },
            )
        session.start()
        return session

    def get_session(self, session_id: UUID) -> LiveDuelSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise DuelSessionNotFoundError(str(session_id))
        return session

    def session_for_participant(self, participant_id: int) -> LiveDuelSession | None:
        session_id = self._by_participant.get(participant_id)
        if session_id is None:
            return None
        return self._sessions.get(session_id)

    def is_busy(self, participant_id: int) -> bool:
        return participant_id in self._by_participant

    async def submit_answer(
        self,
        *,
        participant_id: int,
        session_id: UUID,
        choice: int,
        client_response_ms: int | None = None,
        round_number: int | None = None,
    ) -> SubmitAck:
        session = self.get_session(session_id)
        return await session.submit_answer(
            participant_id,
            choice,
            client_response_ms=client_response_ms,
            round_number=round_number,
        )

    async def forfeit_participant(self, participant_id: int) -> bool:
        session = self.session_for_participant(participant_id)
        if session is None:
            return False
        return await session.forfeit(participant_id)

    async def shutdown(self) -> None:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            self._by_participant.clear()
        await asyncio.gather(*(session.cancel() for session in sessions), return_exceptions=True)
        logger.info("live_duel_registry_shutdown", cancelled_total=len(sessions))

    async def _on_session_finished(self, session: LiveDuelSession, result: DuelResult) -> None:
        async with self._lock:
            self._sessions.pop(session.session_id, None)
            for participant_id in session.participant_ids:
                if self._by_participant.get(participant_id) == session.session_id:
                    del self._by_participant[participant_id]
        if self._settlement is not None:
            await self._settlement(session, result)
