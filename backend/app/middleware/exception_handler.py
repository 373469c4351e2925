"""Exception handlers for structured error responses.

Every error body has the same shape: ``{"error", "message", "details"}``.
"""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from ..exceptions import DatabaseError, GridfillException

logger = logging.getLogger(__name__)


async def gridfill_exception_handler(request: Request, exc: GridfillException) -> JSONResponse:
    """
    Convert a GridfillException into the standard JSON error body.

    Client errors log at WARNING, server errors at ERROR.
    """
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"GridfillException: {exc.error_code.value}",
        extra={
            "error_code": exc.error_code.value,
            "path": request.url.path,
            "method": request.method,
            "details": exc.details,
            "status_code": exc.status_code
        }
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database failures that escaped a route become a DATABASE_ERROR body.

    The driver message stays in the log; clients only see that the
    operation failed.
    """
    logger.error(
        f"Unhandled database error on {request.method} {request.url.path}: {exc}",
        extra={"path": request.url.path, "method": request.method},
    )
    error = DatabaseError("Database operation failed")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())
