from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from app.game.errors import MatchRequestCancelledError
from app.game.participants import ParticipantProfile

if TYPE_CHECKING:
    from app.game.matchmaking.service import MatchAssignment


@dataclass(eq=False, slots=True)
class WaitingEntry:
    participant: ParticipantProfile
    subject: str
    enqueued_at: float
    future: asyncio.Future[MatchAssignment] = field(repr=False)

    @property
    def participant_id(self) -> int:
        return self.participant.participant_id


class WaitingPool:
    def __init__(self) -> None:
        self._queues: dict[str, deque[WaitingEntry]] = {}
        self._by_participant: dict[int, WaitingEntry] = {}
        self._lock = asyncio.Lock()

    def waiting_count(self, subject: str | None = None) -> int:
        if subject is None:
            return len(self._by_participant)
        return len(self._queues.get(subject, ()))

    def is_waiting(self, participant_id: int) -> bool:
        return participant_id in self._by_participant

    async def claim_or_enqueue(self, entry: WaitingEntry) -> WaitingEntry | None:
        """Pops the oldest compatible waiter, or enqueues `entry` and returns None."""
        async with self._lock:
            previous = self._by_participant.pop(entry.participant_id, None)
            if previous is not None:
                self._remove_from_queue(previous)
                _fail(previous, "superseded by a newer match request")

            queue = self._queues.setdefault(entry.subject, deque())
            while queue:
                candidate = queue.popleft()
                if candidate.future.done():
                    self._by_participant.pop(candidate.participant_id, None)
                    continue
                del self._by_participant[candidate.participant_id]
                return candidate

            queue.append(entry)
            self._by_participant[entry.participant_id] = entry
            return None

    async def withdraw(self, entry: WaitingEntry) -> bool:
        async with self._lock:
            if self._by_participant.get(entry.participant_id) is not entry:
                return False
            del self._by_participant[entry.participant_id]
            self._remove_from_queue(entry)
            return True

    async def cancel(self, participant_id: int) -> bool:
        async with self._lock:
            entry = self._by_participant.pop(participant_id, None)
            if entry is None:
                return False
            self._remove_from_queue(entry)
        _fail(entry, "match request cancelled")
        return True

    async def clear(self) -> int:
        async with self._lock:
            entries = list(self._by_participant.values())
            self._by_participant.clear()
            self._queues.clear()
        for entry in entries:
            _fail(entry, "matchmaking is shutting down")
        return len(entries)

    def _remove_from_queue(self, entry: WaitingEntry) -> None:
        queue = self._queues.get(entry.subject)
        if queue is None:
            return
        try:
            queue.remove(entry)
        except ValueError:
            pass
        if not queue:
            del self._queues[entry.subject]


def _fail(entry: WaitingEntry, reason: str) -> None:
    if not entry.future.done():
        entry.future.set_exception(MatchRequestCancelledError(reason))
