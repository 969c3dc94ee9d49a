"""
Logging setup and per-request tracing.

Every request gets a short id. It is stored in a context variable so log
lines emitted while handling the request carry it, and it is echoed back in
the `X-Request-ID` response header.
"""

from __future__ import annotations

import logging
import sys
import time
from contextvars import ContextVar
from pathlib import Path
from uuid import uuid4

from fastapi import Request

from . import config

REQUEST_ID_HEADER = "X-Request-ID"

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

logger = logging.getLogger("catalog.request")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


def new_request_id() -> str:
    return uuid4().hex[:12]


LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - [%(request_id)s] %(message)s"


def configure_logging() -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    path = config.log_file()
    if path:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.addFilter(RequestIdFilter())
    logging.basicConfig(
        level=config.log_level(),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    # uvicorn's access log duplicates the request line below.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)



async def request_logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
    token = _request_id.set(request_id)
    started = time.perf_counter()
    try:
        logger.info("request_started method=%s path=%s", request.method, request.url.path)
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "request method=%s path=%s status=%s ms=%.1f",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
    finally:
        _request_id.reset(token)
