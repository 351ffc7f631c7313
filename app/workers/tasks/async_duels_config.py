from __future__ import annotations

from app.core.config import get_settings

settings = get_settings()

EXPIRY_BATCH_SIZE = max(1, int(settings.async_expiry_batch_size))
EXPIRY_SCAN_INTERVAL_SECONDS = max(30, int(settings.async_expiry_scan_interval_seconds))

__all__ = ["EXPIRY_BATCH_SIZE", "EXPIRY_SCAN_INTERVAL_SECONDS"]
