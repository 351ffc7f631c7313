from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.workers.tasks import async_duels


def test_run_async_duel_expiry_task_wrapper(monkeypatch) -> None:
    async def fake_async(*, batch_size: int) -> dict[str, int]:
        return {
            "batch_size": batch_size,
            "examined_total": 3,
            "expired_total": 2,
            "with_winner_total": 1,
        }

    monkeypatch.setattr(async_duels, "run_async_duel_expiry_async", fake_async)

    result = async_duels.run_async_duel_expiry(batch_size=7)
    assert result["batch_size"] == 7
    assert result["expired_total"] == 2


class _FakeSessionContext:
    def __init__(self, session: object) -> None:
        self.session = session

    async def __aenter__(self) -> object:
        return self.session

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


@pytest.mark.asyncio
async def test_run_async_duel_expiry_clamps_batch_size(monkeypatch) -> None:
    marker = object()
    captured: dict[str, object] = {}

    async def _fake_expire(session, *, now_utc, batch_size: int) -> dict[str, int]:
        captured["session"] = session
        captured["batch_size"] = batch_size
        return {"examined_total": 0, "expired_total": 0, "with_winner_total": 0}

    monkeypatch.setattr(async_duels, "SessionLocal", SimpleNamespace(begin=lambda: _FakeSessionContext(marker)))
    monkeypatch.setattr(async_duels.AsyncDuelService, "expire_due_matches", _fake_expire)

    result = await async_duels.run_async_duel_expiry_async(batch_size=0)

    assert captured == {"session": marker, "batch_size": 1}
    assert result == {"batch_size": 1, "examined_total": 0, "expired_total": 0, "with_winner_total": 0}


def test_expiry_scan_is_scheduled_on_beat() -> None:
    schedule = async_duels.celery_app.conf.beat_schedule["async-duel-expiry-scan"]
    assert schedule["task"] == "app.workers.tasks.async_duels.run_async_duel_expiry"
