from __future__ import annotations

from .accept import accept_match
from .constants import ASYNC_INBOX_LIMIT, ASYNC_MATCH_EXPIRY_HOURS, ASYNC_TOTAL_ROUNDS
from .create import create_match
from .expire import _expire_and_settle, expire_due_matches
from .internal import (
    _async_round_difficulty,
    _build_snapshot,
    _expire_match_if_due,
    _final_outcomes,
    _settle_finished_match,
)
from .queries import get_match_for_participant, list_inbox, mark_read
from .resign import resign_match
from .submit import submit_answer


class AsyncDuelService:
    _async_round_difficulty = staticmethod(_async_round_difficulty)
    _build_snapshot = staticmethod(_build_snapshot)
    _expire_match_if_due = staticmethod(_expire_match_if_due)
    _expire_and_settle = staticmethod(_expire_and_settle)
    _final_outcomes = staticmethod(_final_outcomes)
    _settle_finished_match = staticmethod(_settle_finished_match)
    create_match = staticmethod(create_match)
    accept_match = staticmethod(accept_match)
    submit_answer = staticmethod(submit_answer)
    resign_match = staticmethod(resign_match)
    get_match_for_participant = staticmethod(get_match_for_participant)
    list_inbox = staticmethod(list_inbox)
    mark_read = staticmethod(mark_read)
    expire_due_matches = staticmethod(expire_due_matches)


__all__ = [
    "ASYNC_INBOX_LIMIT",
    "ASYNC_MATCH_EXPIRY_HOURS",
    "ASYNC_TOTAL_ROUNDS",
    "AsyncDuelService",
]
