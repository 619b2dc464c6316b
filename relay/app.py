from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException

from .broadcast import BroadcastScheduler
from .config import Settings, get_settings
from .routers import websockets as ws_router
from .state import RelayState

logger = logging.getLogger(__name__)


# -----------------------------
# Static file mounting
# -----------------------------

class SPAStaticFiles(StaticFiles):
    """Serve the frontend bundle; any path that is not a file gets ``index.html``."""

    fallback = "index.html"

    async def __call__(self, scope, receive, send):
        # Websocket upgrades to paths other than the relay routes are refused here.
        if scope["type"] == "websocket":
            await send({"type": "websocket.close", "code": 1008})
            return
        await super().__call__(scope, receive, send)

    async def get_response(self, path: str, scope):  # type: ignore[override]
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                raise
        try:
            return await super().get_response(self.fallback, scope)
        except HTTPException:
            logger.error("SPA fallback document %s is missing from %s", self.fallback, self.directory)
            return PlainTextResponse("500 Internal Server Error", status_code=500)


# -----------------------------
# FastAPI app factory
# -----------------------------

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.relay = RelayState()
        async with BroadcastScheduler.from_rate(app.state.relay, settings.tick_rate) as scheduler:
            app.state.scheduler = scheduler
            yield

    app = FastAPI(title="Spatial Relay", lifespan=lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    # Websocket routes must be registered before the catch-all static mount.
    app.include_router(ws_router.router)
    app.mount(
        "/",
        SPAStaticFiles(directory=settings.static_dir, html=True, check_dir=False),
        name="frontend",
    )
    return app


app = create_app()

__all__ = ["app", "create_app", "SPAStaticFiles"]
