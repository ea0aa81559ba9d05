"""
FastAPI application factory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..db.bootstrap import open_storage
from ..db.storage import Storage
from ..repository import StudyRepository
from ..search import SearchService
from .errors import register_error_handlers
from .routes import router

logger = logging.getLogger(__name__)


def attach_storage(app: FastAPI, storage: Storage) -> None:
    """Wire the repository and search service for ``storage`` onto the app."""
    app.state.storage = storage
    app.state.repository = StudyRepository(storage)
    app.state.search = SearchService(storage)


def create_app(
    settings: Optional[Settings] = None, storage: Optional[Storage] = None
) -> FastAPI:
    """
    Create and configure the API application.

    Parameters:
        settings: Application settings; read from the environment when omitted.
        storage: An already-open storage to serve from. When omitted, the
            backend is selected once at startup via ``open_storage`` and closed
            at shutdown.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        opened: Optional[Storage] = None
        if getattr(app.state, "storage", None) is None:
            opened = await run_in_threadpool(open_storage, settings)
            attach_storage(app, opened)
        logger.info(f"Serving with {app.state.storage.backend_name} storage")
        try:
            yield
        finally:
            if opened is not None:
                opened.close()

    app = FastAPI(title="studycards", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    if storage is not None:
        attach_storage(app, storage)

    register_error_handlers(app)
    app.include_router(router, prefix="/api")
    return app
