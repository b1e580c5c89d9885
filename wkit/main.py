"""
Composition root: builds the logger, token store and web server explicitly.

    uvicorn wkit.main:create_app --factory
"""
from contextlib import asynccontextmanager
import logging
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request

from wkit.config import Settings, settings as default_settings
from wkit.wlog.handlers import LogManager
from wkit.wresp.server import Server
from wkit.wtoken.store import TokenStore, TokenSweeper

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    token_store: Optional[TokenStore] = None,
) -> FastAPI:
    load_dotenv()
    settings = settings or default_settings

    log_manager = LogManager(settings)

    token_store = token_store or TokenStore()
    sweeper = TokenSweeper(token_store, interval_minutes=settings.TOKEN_CLEANUP_INTERVAL_MINUTES)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log_manager.start()
        sweeper.start()
        logger.info(f"{settings.SERVICE_NAME} started successfully")
        try:
            yield
        finally:
            sweeper.shutdown()
            logger.info(f"{settings.SERVICE_NAME} stopped")
            log_manager.shutdown()

    server = Server(
        title=settings.SERVICE_NAME,
        version="0.1",
        lifespan=lifespan,
        metrics_enabled=settings.METRICS_ENABLED,
    )
    app = server.router
    app.state.settings = settings
    app.state.server = server
    app.state.log_manager = log_manager
    app.state.token_store = token_store
    app.state.token_sweeper = sweeper

    def health(request: Request):
        """Basic health check."""
        return {"status": "healthy", "tokens": len(token_store)}

    server.add_route("/healthz", health)

    return app
