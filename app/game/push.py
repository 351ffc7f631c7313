from __future__ import annotations

from typing import Any, Protocol


class PushChannel(Protocol):
    async def push(self, participant_id: int, event_type: str, payload: dict[str, Any]) -> bool: ...


def build_envelope(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"type": event_type, "payload": payload}
