from __future__ import annotations

ASYNC_STATUS_PENDING = "PENDING"
ASYNC_STATUS_ACTIVE = "ACTIVE"
ASYNC_STATUS_COMPLETED = "COMPLETED"
ASYNC_STATUS_RESIGNED = "RESIGNED"
ASYNC_STATUS_EXPIRED = "EXPIRED"

ASYNC_OPEN_STATUSES: frozenset[str] = frozenset({ASYNC_STATUS_PENDING, ASYNC_STATUS_ACTIVE})

ASYNC_TERMINAL_STATUSES: frozenset[str] = frozenset(
    {
        ASYNC_STATUS_COMPLETED,
        ASYNC_STATUS_RESIGNED,
        ASYNC_STATUS_EXPIRED,
    }
)

SIDE_INITIATOR = "initiator"
SIDE_OPPONENT = "opponent"

REJECT_MATCH_CLOSED = "match_closed"
REJECT_WRONG_ROUND = "wrong_round"
REJECT_ALREADY_ANSWERED = "already_answered"
REJECT_MALFORMED_CHOICE = "malformed_choice"


def is_async_open_status(status: str) -> bool:
    return status in ASYNC_OPEN_STATUSES


def is_async_terminal_status(status: str) -> bool:
    return status in ASYNC_TERMINAL_STATUSES


def other_side(side: str) -> str:
    return SIDE_OPPONENT if side == SIDE_INITIATOR else SIDE_INITIATOR
