from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from couchplan.api import routes
from couchplan.api.errors import register_error_handlers
from couchplan.db import init_db
from couchplan.logging import configure_logging


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield


def create_app() -> FastAPI:
    """Construct the FastAPI application instance."""
    configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Initializing CouchPlan FastAPI application")

    app = FastAPI(
        title="CouchPlan",
        description="Weekly viewing planner that turns a watchlist into a daily episode queue",
        lifespan=lifespan,
    )
    app.include_router(routes.router)
    register_error_handlers(app)

    logger.info("Application routes registered")
    return app


app = create_app()
