"""Maps the newswire error taxonomy onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from newswire.errors import (
    ConflictError, NetworkError, NewswireError, NotFoundError, ParseError,
    PersistenceError, ProviderError, ValidationError,
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class wins.
STATUS_CODES = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (ConflictError, 409),
    (ParseError, 422),
    (NetworkError, 502),
    (ProviderError, 502),
    (PersistenceError, 500),
)


def status_for(error: NewswireError) -> int:
    for error_class, status in STATUS_CODES:
        if isinstance(error, error_class):
            return status
    return 500


async def newswire_error_handler(request: Request, exc: NewswireError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
    return JSONResponse(status_code=status, content={"detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(NewswireError, newswire_error_handler)
