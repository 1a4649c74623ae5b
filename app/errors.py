"""
Domain errors for the check-in engine.

Services raise these without knowing about HTTP; ``register_exception_handlers``
turns them into the standard error envelope::

    {"detail": {"message": "...", "code": "INVALID_ARGUMENT", "details": {...}}}

Database failures (timeouts, lost connections) surface as ``Unavailable``.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    """Base error with a machine-readable code."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_detail(self) -> dict[str, Any]:
        detail: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details is not None:
            detail["details"] = self.details
        return detail


class InvalidArgument(TrackerError):
    """Malformed mood, unknown category, bad or future date."""

    status_code = 422
    code = "INVALID_ARGUMENT"


class NotFound(TrackerError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"


class DataIntegrityAnomaly(TrackerError):
    """Persisted data deviates from its configured shape (e.g. category set size)."""

    code = "DATA_INTEGRITY_ANOMALY"


class Unavailable(TrackerError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "UNAVAILABLE"


async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


async def database_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    logger.exception("Database unavailable during %s %s", request.method, request.url.path)
    error = Unavailable("Storage is temporarily unavailable, please retry")
    return JSONResponse(status_code=error.status_code, content={"detail": error.to_detail()})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrackerError, tracker_error_handler)
    app.add_exception_handler(OperationalError, database_error_handler)
    app.add_exception_handler(DBAPIError, database_error_handler)
