"""
Catalog error types and their HTTP mapping.

Services raise these; `register_exception_handlers` turns them into JSON
bodies of the form {"message": "...", "details": "..."}.
"""

from __future__ import annotations

import logging

import asyncpg
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class CatalogError(RuntimeError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, *, details: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidInputError(CatalogError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CatalogError):
    status_code = status.HTTP_404_NOT_FOUND


class StorageError(CatalogError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def storage_error(message: str, exc: BaseException) -> StorageError:
    """
    Wrap a driver error without leaking its text (which may quote SQL or values).
    """
    return StorageError(message, details=type(exc).__name__)


def _body(message: str, details: str | None = None) -> dict:
    body: dict = {"message": message}
    if details:
        body["details"] = details
    return body


async def _catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request_failed path=%s status=%s message=%s details=%s",
            request.url.path,
            exc.status_code,
            exc.message,
            exc.details,
        )
    else:
        logger.info("request_rejected path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=_body(exc.message, exc.details))


async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


def _describe_validation_errors(exc: RequestValidationError | ValidationError) -> str:
    parts: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x not in {"body", "query", "path", "form"})
        parts.append(f"{loc or 'request'}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


async def _validation_error_handler(_: Request, exc: RequestValidationError | ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_body("Invalid request", _describe_validation_errors(exc)),
    )


async def _database_error_handler(request: Request, exc: asyncpg.PostgresError) -> JSONResponse:
    logger.error("database_error path=%s error=%s", request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body("Database error", type(exc).__name__),
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error path=%s error=%s", request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_body("Internal server error"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogError, _catalog_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(asyncpg.PostgresError, _database_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
