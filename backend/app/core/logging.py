"""Structured logging for the API and the analysis engine.

Engine loggers live under ``engine.*`` and attach analysis figures (node,
alert and violation counts) as ``extra`` fields. Both formatters surface
those fields and the current request ID: the JSON formatter as keys, the
plain formatter as a trailing ``key=value`` list.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Record attributes copied into log output when present
ACCESS_FIELDS = ("method", "path", "status_code", "duration_ms", "client_ip")
ANALYSIS_FIELDS = ("nodes", "edges", "alerts", "violations")


def _context(record: logging.LogRecord, fields: tuple[str, ...]) -> dict[str, Any]:
    ctx: dict[str, Any] = {}
    rid = request_id_var.get("")
    if rid:
        ctx["request_id"] = rid
    for key in fields:
        val = getattr(record, key, None)
        if val is not None:
            ctx[key] = val
    return ctx


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record, ACCESS_FIELDS + ANALYSIS_FIELDS))
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


class PlainFormatter(logging.Formatter):
    """Human-readable lines with request ID and analysis counts appended."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        # Access fields are already in the access message itself
        ctx = _context(record, ANALYSIS_FIELDS)
        if ctx:
            line += " " + " ".join(f"{k}={v}" for k, v in ctx.items())
        return line


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Adds an X-Request-ID header and logs each request with its timing."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        token = request_id_var.set(rid)
        start = time.perf_counter()
        try:
            response: Response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)
            logging.getLogger("retinet.access").info(
                "%s %s -> %s (%.1fms)",
                request.method, request.url.path, response.status_code, duration_ms,
                extra={
                    "method": request.method,
                    "path": str(request.url.path),
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                    "client_ip": request.client.host if request.client else "unknown",
                },
            )
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = rid
        return response


def setup_logging(json_format: bool = False, debug: bool = False) -> None:
    """Configure the root logger; ``debug`` also turns on engine traces."""
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_format else PlainFormatter())

    root = logging.getLogger()
    root.setLevel(logging.INFO)
    # Replace rather than add, create_app may run more than once
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("engine").setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
