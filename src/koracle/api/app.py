"""FastAPI application factory for the oracle HTTP API."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from koracle.api.routes import oracle
from koracle.exceptions import (
    EmptyHistoryError,
    FixedPointError,
    OracleError,
    PaymentError,
    ValidationError,
)

log = structlog.get_logger(__name__)

#: Most specific classes first; the first isinstance match wins.
_STATUS_CODES: list[tuple[type[OracleError], int]] = [
    (EmptyHistoryError, 404),
    (PaymentError, 402),
    (ValidationError, 422),
    (FixedPointError, 422),
]


def status_code_for(exc: OracleError) -> int:
    for exc_type, status in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return status
    return 409


async def _oracle_error_handler(request: Request, exc: OracleError) -> JSONResponse:
    status = status_code_for(exc)
    log.info(
        "oracle_request_rejected",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc),
        status=status,
    )
    return JSONResponse(
        content={"error": str(exc), "type": type(exc).__name__},
        status_code=status,
    )


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the oracle API application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to open and close the database.

    Returns:
        Configured FastAPI application. The gateway is read from
        ``app.state.gateway`` by the route handlers.
    """
    app = FastAPI(
        title="K-Factor Price Oracle",
        lifespan=lifespan,
    )
    app.state.gateway = None

    app.add_exception_handler(OracleError, _oracle_error_handler)
    app.include_router(oracle.router, prefix="/api")

    return app
