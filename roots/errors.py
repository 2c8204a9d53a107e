"""Every failure leaves the API as ``{"message": ...}`` JSON."""
import logging
import math

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from roots.config import settings
from roots.db.errors import DatabaseUnavailable, get_database_error_response
from roots.storage.files import FileTooLarge

logger = logging.getLogger(__name__)


async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Invalid request", "errors": errors})


async def file_too_large_handler(request: Request, exc: FileTooLarge):
    return JSONResponse(status_code=413, content={"message": str(exc)})


def _internal_error(exc: Exception) -> JSONResponse:
    content = {"message": "Internal server error"}
    if settings.is_dev:
        content["detail"] = f"{type(exc).__name__}: {exc}"
    return JSONResponse(status_code=500, content=content)


async def database_exception_handler(request: Request, exc: Exception):
    db_error = get_database_error_response(exc)
    if db_error is None:
        logger.exception("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return _internal_error(exc)

    logger.warning("%s %s failed: %s", request.method, request.url.path, db_error.message)
    headers = None
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        headers = {"Retry-After": str(max(1, math.ceil(retry_after)))}
    return JSONResponse(status_code=db_error.status, content={"message": db_error.message}, headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _internal_error(exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(FileTooLarge, file_too_large_handler)
    app.add_exception_handler(DatabaseUnavailable, database_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
