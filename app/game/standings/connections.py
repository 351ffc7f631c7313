from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from app.game.participants import ParticipantProfile
from app.game.push import build_envelope

logger = structlog.get_logger(__name__)


class ConnectionChannel(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass(slots=True)
class Connection:
    profile: ParticipantProfile
    channel: ConnectionChannel
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class ConnectionHub:
    def __init__(self) -> None:
        self._connections: dict[int, Connection] = {}
        self._lock = asyncio.Lock()

    async def register(self, profile: ParticipantProfile, channel: ConnectionChannel) -> Connection | None:
        async with self._lock:
            previous = self._connections.get(profile.participant_id)
            self._connections[profile.participant_id] = Connection(profile=profile, channel=channel)
        logger.info(
            "connection_registered",
            participant_id=profile.participant_id,
            replaced=previous is not None,
        )
        return previous

    async def unregister(self, participant_id: int, channel: ConnectionChannel | None = None) -> bool:
        async with self._lock:
            current = self._connections.get(participant_id)
            if current is None:
                return False
            if channel is not None and current.channel is not channel:
                return False
            del self._connections[participant_id]
        logger.info("connection_unregistered", participant_id=participant_id)
        return True

    async def update_profile(self, profile: ParticipantProfile) -> None:
        async with self._lock:
            current = self._connections.get(profile.participant_id)
            if current is not None:
                current.profile = profile

    def is_connected(self, participant_id: int) -> bool:
        return participant_id in self._connections

    def profile(self, participant_id: int) -> ParticipantProfile | None:
        connection = self._connections.get(participant_id)
        return connection.profile if connection is not None else None

    def find_by_username(self, username: str) -> ParticipantProfile | None:
        normalized = username.strip().lstrip("@").lower()
        for connection in list(self._connections.values()):
            if connection.profile.username.lower() == normalized:
                return connection.profile
        return None

    def connected_ids(self) -> list[int]:
        return list(self._connections)

    @property
    def connected_count(self) -> int:
        return len(self._connections)

    async def push(self, participant_id: int, event_type: str, payload: dict[str, Any]) -> bool:
        connection = self._connections.get(participant_id)
        if connection is None:
            return False
        try:
            async with connection.send_lock:
                await connection.channel.send_json(build_envelope(event_type, payload))
            return True
        except Exception as exc:
            logger.warning(
                "connection_push_failed",
                participant_id=participant_id,
                event_type=event_type,
                error_type=type(exc).__name__,
            )
            return False

    async def broadcast(self, event_type: str, payload: dict[str, Any]) -> int:
        participant_ids = self.connected_ids()
        if not participant_ids:
            return 0
        results = await asyncio.gather(
            *(self.push(participant_id, event_type, payload) for participant_id in participant_ids)
        )
        return sum(1 for delivered in results if delivered)
