"""Translate service exceptions into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from couchplan.errors import (
    AlreadyFollowing,
    CouchPlanError,
    ExternalUnavailable,
    InvalidTransition,
    NotFound,
    NotYetAvailable,
)

logger = logging.getLogger(__name__)


def _status_for(exc: CouchPlanError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, (InvalidTransition, AlreadyFollowing, NotYetAvailable)):
        return 409
    if isinstance(exc, ExternalUnavailable):
        return 503
    return 400


async def couchplan_error_handler(_request: Request, exc: CouchPlanError) -> JSONResponse:
    status_code = _status_for(exc)
    body: dict[str, object] = {"error": type(exc).__name__, "detail": str(exc)}
    if isinstance(exc, NotYetAvailable):
        body["air_date"] = exc.air_date.isoformat() if exc.air_date else "unknown"
    logger.info("Request failed with %s: %s", status_code, exc)
    return JSONResponse(status_code=status_code, content=body)


async def value_error_handler(_request: Request, exc: ValueError) -> JSONResponse:
    logger.info("Rejected request: %s", exc)
    return JSONResponse(status_code=422, content={"error": "ValueError", "detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CouchPlanError, couchplan_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
