from __future__ import annotations

from app.core.config import get_settings

ASYNC_TOTAL_ROUNDS = max(1, int(get_settings().async_total_rounds))
ASYNC_MATCH_EXPIRY_HOURS = max(1, int(get_settings().async_match_expiry_hours))
ASYNC_INBOX_LIMIT = 50
ASYNC_MAX_ROUND_DIFFICULTY = 10
