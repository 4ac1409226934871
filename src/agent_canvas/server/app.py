from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator

from fastapi import FastAPI, WebSocket

from .agent_sim import agent_loop
from .config import Settings, get_settings
from .relay import Relay


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    relay = Relay(settings)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        task = None
        if settings.demo_agent_enabled:
            task = asyncio.create_task(agent_loop(relay, settings))
        try:
            yield
        finally:
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(title="agent-canvas relay", lifespan=lifespan)
    app.state.relay = relay
    app.state.settings = settings

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.websocket(settings.ws_path)
    async def canvas_ws(ws: WebSocket):
        await relay.serve(ws)

    return app


app = create_app()
