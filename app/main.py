from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from app.api.routes.async_duels import router as async_duels_router
from app.api.routes.duel_ws import router as duel_ws_router
from app.api.routes.health import router as health_router
from app.api.routes.participants import router as participants_router
from app.api.routes.standings import router as standings_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.db.session import dispose_engine
from app.runtime import DuelRuntime


def create_app(runtime: DuelRuntime | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=settings.log_json)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.runtime = runtime or DuelRuntime(settings=settings)
        await app.state.runtime.start()
        try:
            yield
        finally:
            await app.state.runtime.shutdown()
            await dispose_engine()

    app = FastAPI(
        title="Duel Arena API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.include_router(health_router)
    app.include_router(participants_router)
    app.include_router(standings_router)
    app.include_router(async_duels_router)
    app.include_router(duel_ws_router)
    return app


app = create_app()


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_env == "dev",
    )


if __name__ == "__main__":
    run()
