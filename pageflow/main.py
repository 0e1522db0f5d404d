from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pageflow import __version__
from pageflow.api.http import health_router, auth_router, pages_router, blocks_router, comments_router
from pageflow.api.ws.sync import router as websocket_router
from pageflow.core.config import Settings, settings as default_settings
from pageflow.core.db import build_engine, build_session_factory, create_tables
from pageflow.core.logging import setup_logging
from pageflow.domains.collaboration.entities import SessionDirectory
from pageflow.domains.collaboration.services import CollaborationBroadcaster, PresenceTracker, RoomRegistry

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory; each app owns its engine and realtime state"""
    settings = settings or default_settings
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings.database_url, echo=settings.sql_echo)
        if settings.auto_create_tables:
            await create_tables(engine)

        registry = RoomRegistry()
        presence = PresenceTracker(registry)
        directory = SessionDirectory()

        app.state.settings = settings
        app.state.engine = engine
        app.state.session_factory = build_session_factory(engine)
        app.state.registry = registry
        app.state.presence = presence
        app.state.directory = directory
        app.state.broadcaster = CollaborationBroadcaster(registry, presence, directory)
        logger.info("PageFlow started")

        yield

        await engine.dispose()
        logger.info("PageFlow stopped")

    app = FastAPI(
        title="PageFlow",
        description="Block-based pages with real-time co-editing",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(pages_router)
    app.include_router(blocks_router)
    app.include_router(comments_router)
    app.include_router(websocket_router)

    return app


app = create_app()
