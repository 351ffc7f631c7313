from __future__ import annotations

from datetime import datetime, timezone

import structlog

from app.db.session import SessionLocal
from app.game.async_duels.service import AsyncDuelService
from app.workers.asyncio_runner import run_async_job
from app.workers.celery_app import celery_app
from app.workers.tasks.async_duels_config import EXPIRY_BATCH_SIZE, EXPIRY_SCAN_INTERVAL_SECONDS

logger = structlog.get_logger(__name__)


async def run_async_duel_expiry_async(*, batch_size: int = EXPIRY_BATCH_SIZE) -> dict[str, int]:
    now_utc = datetime.now(timezone.utc)
    resolved_batch_size = max(1, int(batch_size))

    async with SessionLocal.begin() as session:
        counts = await AsyncDuelService.expire_due_matches(
            session,
            now_utc=now_utc,
            batch_size=resolved_batch_size,
        )

    result = {"batch_size": resolved_batch_size, **counts}
    logger.info("async_duel_expiry_processed", **result)
    return result


@celery_app.task(name="app.workers.tasks.async_duels.run_async_duel_expiry")
def run_async_duel_expiry(batch_size: int = EXPIRY_BATCH_SIZE) -> dict[str, int]:
    return run_async_job(
        run_async_duel_expiry_async(batch_size=batch_size),
        job_name="async_duel_expiry",
    )


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "async-duel-expiry-scan": {
            "task": "app.workers.tasks.async_duels.run_async_duel_expiry",
            "schedule": float(EXPIRY_SCAN_INTERVAL_SECONDS),
            "options": {"queue": "q_normal"},
        },
    }
)
