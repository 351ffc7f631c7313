from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request

from .duel_errors import get_runtime

router = APIRouter(tags=["standings"])


@router.get("/standings")
async def get_standings(request: Request) -> dict[str, Any]:
    return get_runtime(request).standings.cache.snapshot.to_payload()
