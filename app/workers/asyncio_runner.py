from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from typing import Any, TypeVar

import structlog

from app.db.session import dispose_engine

T = TypeVar("T")

logger = structlog.get_logger(__name__)


async def _run_with_fresh_db_pool(job: Coroutine[Any, Any, T], *, job_name: str) -> T:
    # Each Celery invocation gets its own event loop; pooled asyncpg
    # connections must not outlive the loop that opened them.
    await dispose_engine()
    started = time.monotonic()
    try:
        return await job
    except Exception:
        logger.exception("worker_async_job_failed", job=job_name)
        raise
    finally:
        logger.debug(
            "worker_async_job_finished",
            job=job_name,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        await dispose_engine()


def run_async_job(job: Coroutine[Any, Any, T], *, job_name: str | None = None) -> T:
    name = job_name or getattr(job, "__qualname__", None) or type(job).__name__
    return asyncio.run(_run_with_fresh_db_pool(job, job_name=name))
