from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from app.api.routes import participants as participants_routes
from app.main import create_app


class _FakeSessionContext:
    async def __aenter__(self) -> object:
        return object()

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.setattr(participants_routes, "SessionLocal", SimpleNamespace(begin=_FakeSessionContext))
    return TestClient(create_app())


def test_participant_can_deactivate_itself_once(client, monkeypatch) -> None:
    active = {5}

    async def _fake_deactivate(session, user_id: int, now_utc) -> int:
        if user_id not in active:
            return 0
        active.discard(user_id)
        return 1

    monkeypatch.setattr(participants_routes.UsersRepo, "deactivate", _fake_deactivate)

    first = client.delete("/participants/5", headers={"X-Participant-Id": "5"})
    second = client.delete("/participants/5", headers={"X-Participant-Id": "5"})

    assert first.status_code == 204
    assert second.status_code == 404
    assert second.json() == {"detail": {"code": "E_NOT_FOUND"}}


def test_participant_cannot_deactivate_someone_else(client, monkeypatch) -> None:
    async def _fail_deactivate(session, user_id: int, now_utc) -> int:
        raise AssertionError("must not be called")

    monkeypatch.setattr(participants_routes.UsersRepo, "deactivate", _fail_deactivate)

    response = client.delete("/participants/5", headers={"X-Participant-Id": "6"})

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}
