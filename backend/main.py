# backend/main.py

from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.core.config import Settings, settings as default_settings
from backend.core.logging import setup_logging, get_logger
from backend.core.state import build_state
from backend.services.generation_client import GenerationClient
from backend.services.redis_pub_sub import AsyncRedisPubSubService
from backend.api.routes import auth, health, messages, metrics, participants, root, rooms, web
from backend.api import websocket as websocket_module

# Configure logging first
setup_logging()
logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    generation_client: Optional[GenerationClient] = None,
) -> FastAPI:
    """
    Build the FastAPI app with its own service handles.

    Args:
        settings: Configuration (defaults to the environment-driven settings)
        generation_client: Override for the text-generation client (tests)
    """
    settings = settings or default_settings
    state = build_state(settings, generation_client)

    app = FastAPI(title="Normie Chat - Style-Aware Translation")
    app.state.chat = state

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # REST routes
    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(auth.router)
    app.include_router(participants.router)
    app.include_router(rooms.router)
    app.include_router(messages.router)

    # WebSocket routes
    app.include_router(websocket_module.router)

    # Client bundle (catch-all goes last)
    if settings.CLIENT_DIST_DIR:
        app.include_router(web.build_router(settings.CLIENT_DIST_DIR))
    else:
        app.include_router(root.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info(f"🚀 Application starting - model={settings.GENERATION_MODEL}")
        if not settings.GEMINI_API_KEY and generation_client is None:
            logger.warning("GEMINI_API_KEY is not set - every rewrite will fail")

        if settings.PUB_SUB_SERVICE == "redis":
            redis_service = AsyncRedisPubSubService(
                settings.redis_url, state.room_manager, state.message_store, state.registry
            )
            await redis_service.connect()
            state.redis_service = redis_service

            # Start subscriber in background
            state.redis_listener = asyncio.create_task(redis_service.listen())

    @app.on_event("shutdown")
    async def on_shutdown():
        for websocket in list(state.connection_manager.sessions):
            state.connection_manager.disconnect(websocket)
        if state.redis_service is not None:
            state.redis_listener.cancel()
            await state.redis_service.close()
        close = getattr(state.generation_client, "close", None)
        if close is not None:
            await close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000)
