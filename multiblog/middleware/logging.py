"""
Structured Logging

One JSON object per log line, shared by the application, access and audit
loggers. Access records carry the request id and how the Host header was
routed: to a blog (with its tenant id), to the platform's own pages, or to
nothing.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

_EXTRA_FIELDS = (
    "method",
    "path",
    "host",
    "host_kind",
    "tenant_id",
    "status_code",
    "duration_ms",
    "audit_event",
    "audit",
)

_QUIET_PATHS = frozenset({"/health"})


class RequestIdFilter(logging.Filter):
    """Stamp records with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in _EXTRA_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _status_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Access log keyed by routing outcome.

    Routing is looked up through the platform's tenant resolver after the
    response is produced. Resolutions are cached, so this normally repeats
    the lookup the route dependencies already made without touching the
    database.
    """

    def __init__(self, app: ASGIApp, logger_name: str = "multiblog.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request_id_var.set(request_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            await self._record(request, 500, started, failed=True)
            raise

        response.headers["X-Request-ID"] = request_id
        await self._record(request, response.status_code, started)
        return response

    async def _record(self, request: Request, status_code: int, started: float, failed: bool = False) -> None:
        if request.url.path in _QUIET_PATHS:
            return
        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        host_kind, tenant_id = await self._routing(request)

        message = f"{request.method} {request.url.path} [{host_kind}] -> {status_code} in {duration_ms}ms"
        if failed:
            message += " (unhandled error)"
        self.logger.log(
            _status_level(status_code),
            message,
            extra={
                "method": request.method,
                "path": request.url.path,
                "host": request.headers.get("host", ""),
                "host_kind": host_kind,
                "tenant_id": tenant_id,
                "status_code": status_code,
                "duration_ms": duration_ms,
            },
        )

    async def _routing(self, request: Request) -> tuple[str, int | None]:
        platform = getattr(request.app.state, "platform", None)
        if platform is None:
            return "unknown", None
        try:
            resolution = await platform.resolver.resolve_from_host(request.headers.get("host"))
        except SQLAlchemyError as e:
            self.logger.warning("Could not resolve host for access log: %s", e)
            return "unresolved", None
        tenant_id = resolution.context.tenant_id if resolution.context is not None else None
        return resolution.kind.value, tenant_id


_LOGGER_LEVELS = {
    "multiblog.audit": "INFO",
    "uvicorn": "WARNING",
    "uvicorn.access": "WARNING",
    "sqlalchemy.engine": "WARNING",
    "apscheduler": "WARNING",
}


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True, log_file: str | None = None) -> None:
    """
    Route every logger through a single handler on the root logger.

    Audit events stay at INFO whatever ``log_level`` is; uvicorn's own access
    log is quietened because ``AccessLogMiddleware`` replaces it.
    """
    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level.upper())

    for name, level in _LOGGER_LEVELS.items():
        logging.getLogger(name).setLevel(level)
