from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api.routes import health as health_routes
from app.main import create_app


async def _ok_check() -> dict[str, str]:
    return {"status": "ok"}


def _started_runtime() -> SimpleNamespace:
    return SimpleNamespace(
        started=True,
        registry=SimpleNamespace(active_count=2),
        pool=SimpleNamespace(waiting_count=lambda: 1),
        hub=SimpleNamespace(connected_count=5),
        challenges=SimpleNamespace(pending_count=0),
    )


def _client(runtime: SimpleNamespace | None = None) -> TestClient:
    app = create_app()
    if runtime is not None:
        app.state.runtime = runtime
    return TestClient(app)


@pytest.fixture
def dependencies_ok(monkeypatch) -> None:
    monkeypatch.setattr(health_routes, "_check_database", _ok_check)
    monkeypatch.setattr(health_routes, "_check_redis", _ok_check)
    monkeypatch.setattr(health_routes, "_check_celery_worker", _ok_check)


def test_health_reports_engine_counters(dependencies_ok) -> None:
    response = _client(_started_runtime()).get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "checks": {
            "database": {"status": "ok"},
            "redis": {"status": "ok"},
            "celery": {"status": "ok"},
            "runtime": {
                "status": "ok",
                "live_sessions": 2,
                "waiting": 1,
                "connected": 5,
                "pending_challenges": 0,
            },
        },
    }


def test_health_is_degraded_before_runtime_starts(dependencies_ok) -> None:
    response = _client().get("/health")

    assert response.status_code == 503
    assert response.json()["checks"]["runtime"] == {"status": "failed", "error": "runtime_not_started"}


def test_live_needs_nothing() -> None:
    response = _client().get("/live")

    assert response.status_code == 200
    assert response.json() == {"status": "live"}


def test_health_returns_503_when_redis_failed(dependencies_ok, monkeypatch) -> None:
    async def _failed_redis() -> dict[str, str]:
        return {"status": "failed", "error": "redis_unavailable"}

    monkeypatch.setattr(health_routes, "_check_redis", _failed_redis)

    response = _client(_started_runtime()).get("/health")

    assert response.status_code == 503
    payload = response.json()
    assert payload["status"] == "degraded"
    assert payload["checks"]["redis"] == {"status": "failed", "error": "redis_unavailable"}


def test_ready_ignores_celery(dependencies_ok, monkeypatch) -> None:
    async def _failed_celery() -> dict[str, str]:
        return {"status": "failed", "error": "celery_no_workers"}

    monkeypatch.setattr(health_routes, "_check_celery_worker", _failed_celery)

    response = _client(_started_runtime()).get("/ready")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"
    assert set(response.json()["checks"]) == {"database", "redis", "runtime"}


@pytest.mark.asyncio
async def test_database_check_hides_exception_text(monkeypatch) -> None:
    class _BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("password=secret")

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(health_routes, "SessionLocal", lambda: _BrokenSession())

    result = await health_routes._check_database()
    assert result == {"status": "failed", "error": "database_unavailable"}


def test_celery_check_hides_exception_text(monkeypatch) -> None:
    class _BrokenControl:
        def inspect(self, timeout: float):
            raise RuntimeError("broker-url=redis://secret")

    monkeypatch.setattr(health_routes.celery_app, "control", _BrokenControl())

    result = health_routes._check_celery_worker_sync()
    assert result == {"status": "failed", "error": "celery_unavailable"}
