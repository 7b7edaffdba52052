"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect

from assist_signaling.api.admin import router as admin_router
from assist_signaling.api.connections import WebSocketConnection
from assist_signaling.api.signaling import handle_inbound
from assist_signaling.app_logging import configure_logging
from assist_signaling.containers import AppContainer
from assist_signaling.domain.models import Role


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await app.state.container.reaper.start()
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple liveness probe."""
        return {"status": "ok"}

    @app.get("/status")
    async def status(request: Request) -> dict[str, int]:
        """Counts of connections, sessions and waiting users."""
        state_container: AppContainer = request.app.state.container
        return await state_container.broker.stats()

    @app.get("/api/professionals/available")
    async def available_professionals(request: Request) -> dict[str, int]:
        """Number of professionals free to take a call."""
        state_container: AppContainer = request.app.state.container
        stats = await state_container.broker.stats()
        return {"count": stats["available_professionals"]}

    @app.websocket("/ws")
    async def signaling_socket(
        websocket: WebSocket, identity: str, role: Role | None = None
    ) -> None:
        """Long-lived signaling connection for one endpoint."""
        state_container: AppContainer = websocket.app.state.container
        broker = state_container.broker
        connection = WebSocketConnection(websocket)
        await websocket.accept()
        logger.info("Connection opened for %s", identity)
        try:
            if role is not None:
                await broker.register(identity, role, connection)
            while True:
                frame = await websocket.receive()
                if frame["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(frame.get("code", 1000))
                raw = frame.get("text")
                if raw is None:
                    raw = frame.get("bytes") or b""
                await handle_inbound(broker, identity, connection, raw)
        except WebSocketDisconnect:
            logger.info("Connection closed for %s", identity)
        finally:
            await broker.disconnect(identity, connection)

    return app
