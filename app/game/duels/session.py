from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from typing import Any
from uuid import UUID, uuid4

import structlog

from app.core.clock import DeadlineClock
from app.game.duels.rules import (
    build_duel_result,
    is_correct_choice,
    is_valid_choice,
    live_round_difficulty,
    tally_scores,
)
from app.game.duels.types import (
    NO_ANSWER,
    DuelPhase,
    DuelResult,
    DuelSeat,
    RoundRecord,
    SideAnswer,
    SubmissionRejection,
    SubmitAck,
)
from app.game.errors import GenerationUnavailableError
from app.game.matchmaking.bots import decide
from app.game.push import PushChannel
from app.game.questions.supplier import QuestionSupplier
from app.game.questions.types import QuestionView

logger = structlog.get_logger(__name__)

BOT_MAX_ROUND_SHARE = 0.8

FinishedHook = Callable[["LiveDuelSession", DuelResult], Awaitable[None]]


class LiveDuelSession:
    """One live duel between two seats, either of which may be a bot.

    Round state is only touched while holding `_lock` and a single runner task
    drives the phases. An open round waits for whichever comes first: both
    answers in, or the round deadline.
    """

    def __init__(
        self,
        *,
        subject: str,
        seats: tuple[DuelSeat, DuelSeat],
        supplier: QuestionSupplier,
        clock: DeadlineClock,
        push: PushChannel,
        total_rounds: int,
        round_seconds: float,
        result_pause_seconds: float = 0.0,
        rng: random.Random | None = None,
        session_id: UUID | None = None,
        on_finished: FinishedHook | None = None,
    ) -> None:
        if len(seats) != 2 or seats[0].participant_id == seats[1].participant_id:
            raise ValueError("a live duel needs two distinct seats")
        self._session_id = session_id or uuid4()
        self._subject = subject
        self._seats = seats
        self._seat_ids = {seat.participant_id for seat in seats}
        self._supplier = supplier
        self._clock = clock
        self._push = push
        self._total_rounds = max(1, int(total_rounds))
        self._round_seconds = float(round_seconds)
        self._result_pause_seconds = max(0.0, float(result_pause_seconds))
        self._rng = rng or random.Random()
        self._on_finished = on_finished

        self._lock = asyncio.Lock()
        self._phase = DuelPhase.AWAITING_ROUND
        self._rounds: list[RoundRecord] = []
        self._seen: set[str] = set()
        self._scores: dict[int, int] = {seat.participant_id: 0 for seat in seats}
        self._round_complete = asyncio.Event()
        self._finished = asyncio.Event()
        self._forfeited_by: int | None = None
        self._aborted = False
        self._result: DuelResult | None = None
        self._task: asyncio.Task[DuelResult] | None = None
        self._bot_tasks: set[asyncio.Task[None]] = set()

    @property
    def session_id(self) -> UUID:
        return self._session_id

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def seats(self) -> tuple[DuelSeat, DuelSeat]:
        return self._seats

    @property
    def participant_ids(self) -> tuple[int, int]:
        return (self._seats[0].participant_id, self._seats[1].participant_id)

    @property
    def phase(self) -> DuelPhase:
        return self._phase

    @property
    def rounds(self) -> tuple[RoundRecord, ...]:
        return tuple(self._rounds)

    @property
    def scores(self) -> dict[int, int]:
        return dict(self._scores)

    @property
    def result(self) -> DuelResult | None:
        return self._result

    @property
    def is_finished(self) -> bool:
        return self._finished.is_set()

    def seat_for(self, participant_id: int) -> DuelSeat:
        for seat in self._seats:
            if seat.participant_id == participant_id:
                return seat
        raise KeyError(participant_id)

    def opponent_of(self, participant_id: int) -> DuelSeat:
        for seat in self._seats:
            if seat.participant_id != participant_id:
                return seat
        raise KeyError(participant_id)

    def start(self) -> asyncio.Task[DuelResult]:
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"live-duel-{self._session_id}")
        return self._task

    async def cancel(self) -> None:
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def wait_finished(self) -> DuelResult:
        await self._finished.wait()
        assert self._result is not None
        return self._result

    async def run(self) -> DuelResult:
        logger.info(
            "live_duel_started",
            session_id=str(self._session_id),
            subject=self._subject,
            participant_ids=list(self.participant_ids),
            total_rounds=self._total_rounds,
        )
        try:
            while len(self._rounds) < self._total_rounds and self._forfeited_by is None:
                if not await self._open_next_round():
                    break
                await self._wait_for_round_close()
                await self._score_current_round()
                more_rounds = len(self._rounds) < self._total_rounds
                if more_rounds and self._forfeited_by is None and self._result_pause_seconds > 0:
                    await asyncio.sleep(self._result_pause_seconds)
        except asyncio.CancelledError:
            self._close_on_cancel()
            raise
        finally:
            self._cancel_bot_tasks()
        return await self._finish()

    async def submit_answer(
        self,
        participant_id: int,
        choice: int,
        *,
        client_response_ms: int | None = None,
        round_number: int | None = None,
    ) -> SubmitAck:
        async with self._lock:
            ack = self._record_answer(
                participant_id,
                choice,
                client_response_ms=client_response_ms,
                round_number=round_number,
            )
        if not ack.accepted:
            logger.info(
                "live_duel_answer_rejected",
                session_id=str(self._session_id),
                participant_id=participant_id,
                round=ack.round_number,
                reason=ack.reason.value if ack.reason is not None else None,
            )
        return ack

    async def forfeit(self, participant_id: int) -> bool:
        # Only the forfeiting side's slot closes; the open round still resolves
        # for the other side by answer or deadline.
        async with self._lock:
            if participant_id not in self._seat_ids:
                return False
            if self._phase == DuelPhase.FINISHED or self._forfeited_by is not None:
                return False
            self._forfeited_by = participant_id
            if self._phase == DuelPhase.ROUND_OPEN and self._rounds:
                record = self._rounds[-1]
                if participant_id not in record.answers:
                    record.answers[participant_id] = SideAnswer(
                        choice=NO_ANSWER,
                        is_correct=False,
                        response_ms=self._clock.elapsed_ms(record.opened_at),
                        answered_at=self._clock.utcnow(),
                        timed_out=True,
                        forfeited=True,
                    )
                if len(record.answers) == len(self._seats):
                    self._round_complete.set()
        logger.info(
            "live_duel_forfeited",
            session_id=str(self._session_id),
            participant_id=participant_id,
            round=len(self._rounds),
        )
        return True

    def snapshot(self, participant_id: int) -> dict[str, Any]:
        opponent = self.opponent_of(participant_id)
        current = self._rounds[-1] if self._rounds else None
        return {
            "session_id": str(self._session_id),
            "subject": self._subject,
            "phase": self._phase.value,
            "round": current.round_number if current is not None else 0,
            "total_rounds": self._total_rounds,
            "your_score": self._scores.get(participant_id, 0),
            "opponent_score": self._scores.get(opponent.participant_id, 0),
            "opponent": opponent.profile.to_payload(),
        }

    def _record_answer(
        self,
        participant_id: int,
        choice: int,
        *,
        client_response_ms: int | None,
        round_number: int | None,
    ) -> SubmitAck:
        current = self._rounds[-1] if self._rounds else None
        current_number = current.round_number if current is not None else None
        if participant_id not in self._seat_ids:
            return SubmitAck(False, current_number, SubmissionRejection.NOT_IN_SESSION)
        if not is_valid_choice(choice):
            return SubmitAck(False, current_number, SubmissionRejection.MALFORMED_CHOICE)
        if (
            self._phase != DuelPhase.ROUND_OPEN
            or current is None
            or current.question is None
            or (round_number is not None and round_number != current_number)
        ):
            return SubmitAck(False, current_number, SubmissionRejection.ROUND_CLOSED)
        if participant_id in current.answers:
            return SubmitAck(False, current_number, SubmissionRejection.DUPLICATE)
        if current.deadline is not None and current.deadline.expired:
            return SubmitAck(False, current_number, SubmissionRejection.LATE)

        advisory_ms = client_response_ms if isinstance(client_response_ms, int) and client_response_ms >= 0 else None
        current.answers[participant_id] = SideAnswer(
            choice=choice,
            is_correct=is_correct_choice(choice, current.question.correct_option),
            response_ms=self._clock.elapsed_ms(current.opened_at),
            answered_at=self._clock.utcnow(),
            client_response_ms=advisory_ms,
        )
        if len(current.answers) == len(self._seats):
            self._round_complete.set()
        return SubmitAck(True, current_number)

    async def _open_next_round(self) -> bool:
        round_index = len(self._rounds)
        try:
            supplied = await self._supplier.next_question(
                self._subject,
                difficulty=live_round_difficulty(round_index),
                seen_fingerprints=frozenset(self._seen),
                selection_seed=f"{self._session_id}:{round_index}",
            )
        except GenerationUnavailableError:
            logger.warning(
                "live_duel_aborted_no_question",
                session_id=str(self._session_id),
                round=round_index + 1,
            )
            self._aborted = True
            return False

        async with self._lock:
            if self._forfeited_by is not None:
                return False
            self._seen.add(supplied.fingerprint)
            deadline = self._clock.deadline_after(self._round_seconds)
            record = RoundRecord(
                round_number=round_index + 1,
                question=supplied.question,
                fingerprint=supplied.fingerprint,
                issued_at=deadline.issued_at_utc,
                deadline=deadline,
                opened_at=self._clock.monotonic(),
            )
            self._rounds.append(record)
            self._round_complete = asyncio.Event()
            self._phase = DuelPhase.ROUND_OPEN

        view = QuestionView.from_question(
            supplied.question,
            round_number=record.round_number,
            total_rounds=self._total_rounds,
            deadline_seconds=self._round_seconds,
        )
        await self._push_all("duel:question", {"session_id": str(self._session_id), **view.to_payload()})
        self._schedule_bot_answers(record)
        return True

    async def _wait_for_round_close(self) -> None:
        record = self._rounds[-1]
        assert record.deadline is not None
        try:
            await asyncio.wait_for(self._round_complete.wait(), timeout=record.deadline.remaining())
        except asyncio.TimeoutError:
            pass

    async def _score_current_round(self) -> None:
        async with self._lock:
            self._phase = DuelPhase.ROUND_SCORING
            record = self._rounds[-1]
            closed_at = self._clock.utcnow()
            for seat in self._seats:
                if seat.participant_id not in record.answers:
                    record.answers[seat.participant_id] = SideAnswer(
                        choice=NO_ANSWER,
                        is_correct=False,
                        response_ms=int(self._round_seconds * 1000),
                        answered_at=closed_at,
                        timed_out=True,
                    )
            record.scored = True
            self._scores = tally_scores(self._rounds, self.participant_ids)
        self._cancel_bot_tasks()

        logger.info(
            "live_duel_round_scored",
            session_id=str(self._session_id),
            round=record.round_number,
            timed_out=[pid for pid, answer in record.answers.items() if answer.timed_out],
            scores={str(pid): score for pid, score in self._scores.items()},
        )
        assert record.question is not None
        for seat in self._seats:
            if seat.is_bot:
                continue
            opponent = self.opponent_of(seat.participant_id)
            await self._push.push(
                seat.participant_id,
                "duel:result",
                {
                    "session_id": str(self._session_id),
                    "round": record.round_number,
                    "question_id": record.question.question_id,
                    "correct_option": record.question.correct_option,
                    "explanation": record.question.explanation,
                    "your_answer": record.answers[seat.participant_id].to_payload(),
                    "opponent_answer": record.answers[opponent.participant_id].to_payload(),
                    "your_score": self._scores[seat.participant_id],
                    "opponent_score": self._scores[opponent.participant_id],
                },
            )

    async def _finish(self) -> DuelResult:
        async with self._lock:
            self._append_forfeited_rounds()
            self._phase = DuelPhase.FINISHED
            self._scores = tally_scores(self._rounds, self.participant_ids)
            result = self._build_result()
            self._result = result

        logger.info(
            "live_duel_finished",
            session_id=str(self._session_id),
            winner_id=result.winner_id,
            draw=result.is_draw,
            aborted=result.aborted,
            forfeited_by=result.forfeited_by,
            rounds_played=result.rounds_played,
        )
        try:
            for seat in self._seats:
                if not seat.is_bot:
                    await self._push.push(
                        seat.participant_id,
                        "duel:end",
                        result.to_payload(seat.participant_id),
                    )
            if self._on_finished is not None:
                try:
                    await self._on_finished(self, result)
                except Exception:
                    logger.exception("live_duel_finish_hook_failed", session_id=str(self._session_id))
        finally:
            self._finished.set()
        return result

    def _close_on_cancel(self) -> None:
        self._aborted = True
        self._phase = DuelPhase.FINISHED
        self._result = self._build_result()
        self._finished.set()
        logger.info("live_duel_cancelled", session_id=str(self._session_id), rounds=len(self._rounds))

    def _append_forfeited_rounds(self) -> None:
        if self._forfeited_by is None:
            return
        now_utc = self._clock.utcnow()
        for round_number in range(len(self._rounds) + 1, self._total_rounds + 1):
            record = RoundRecord(
                round_number=round_number,
                question=None,
                fingerprint=None,
                issued_at=now_utc,
                deadline=None,
                scored=True,
            )
            for participant_id in self.participant_ids:
                record.answers[participant_id] = SideAnswer(
                    choice=NO_ANSWER,
                    is_correct=False,
                    response_ms=0,
                    answered_at=now_utc,
                    forfeited=participant_id == self._forfeited_by,
                )
            self._rounds.append(record)

    def _build_result(self) -> DuelResult:
        return build_duel_result(
            session_id=self._session_id,
            subject=self._subject,
            total_rounds=self._total_rounds,
            rounds=self._rounds,
            participant_ids=self.participant_ids,
            aborted=self._aborted,
            forfeited_by=self._forfeited_by,
        )

    def _schedule_bot_answers(self, record: RoundRecord) -> None:
        assert record.question is not None
        for seat in self._seats:
            if seat.bot is None:
                continue
            decision = decide(seat.bot, correct_option=record.question.correct_option, rng=self._rng)
            delay = min(decision.answer_seconds, self._round_seconds * BOT_MAX_ROUND_SHARE)
            task = asyncio.create_task(
                self._bot_answer(seat.participant_id, record.round_number, decision.choice, delay)
            )
            self._bot_tasks.add(task)
            task.add_done_callback(self._bot_tasks.discard)

    async def _bot_answer(self, participant_id: int, round_number: int, choice: int, delay: float) -> None:
        await asyncio.sleep(delay)
        await self.submit_answer(
            participant_id,
            choice,
            client_response_ms=int(delay * 1000),
            round_number=round_number,
        )

    def _cancel_bot_tasks(self) -> None:
        for task in list(self._bot_tasks):
            task.cancel()
        self._bot_tasks.clear()

    async def _push_all(self, event_type: str, payload: dict[str, Any]) -> None:
        for seat in self._seats:
            if not seat.is_bot:
                await self._push.push(seat.participant_id, event_type, payload)
