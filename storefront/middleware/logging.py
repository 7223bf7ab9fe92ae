"""
Access logging for the interception layer

One log line per request on the ``storefront.access`` logger, tagged with a
request ID and with what the pipeline decided: the locale and route the
public URL resolved to, the internal path it was rewritten to, or the
redirect it was answered with.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

REQUEST_ID_HEADER = "X-Request-ID"

# Paths polled by load balancers; logging them is noise
QUIET_PATHS = frozenset({"/health"})

# LogRecord attributes copied into JSON output when present
ACCESS_FIELDS = (
    "method",
    "path",
    "status_code",
    "duration_ms",
    "client_ip",
    "locale",
    "route_key",
    "internal_path",
    "location",
)

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIdFilter(logging.Filter):
    """Stamp every record with the ID of the request being handled."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("")
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        payload.update({field: getattr(record, field) for field in ACCESS_FIELDS if hasattr(record, field)})
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Log every request once it has been answered.

    Registered outside InterceptMiddleware, so ``path`` is the public URL and
    the pipeline's decisions are read back from ``request.state`` and the
    (possibly rewritten) ASGI scope afterwards.
    """

    def __init__(self, app: ASGIApp, logger_name: str = "storefront.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request_id_var.set(request_id)
        public_path = request.url.path
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._log(request, public_path, 500, started, error=e)
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        self._log(request, public_path, response.status_code, started, location=response.headers.get("location"))
        return response

    def _log(
        self,
        request: Request,
        public_path: str,
        status_code: int,
        started: float,
        location: str | None = None,
        error: Exception | None = None,
    ) -> None:
        if public_path in QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": public_path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_ip": client_ip(request),
        }
        for field in ("locale", "route_key"):
            value = getattr(request.state, field, None)
            if value:
                extra[field] = value
        if request.scope["path"] != public_path:
            extra["internal_path"] = request.scope["path"]
        if location:
            extra["location"] = location

        message = "%s %s -> %d (%.2fms)"
        args = [request.method, public_path, status_code, duration_ms]
        if error is not None:
            message += " %s: %s"
            args.extend([type(error).__name__, error])
        self.logger.log(level_for_status(status_code), message, *args, extra=extra)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = False) -> None:
    """
    Install a single stream handler on the root logger.

    Args:
        log_level: Level name applied to the root and storefront loggers
        json_format: Emit StructuredFormatter JSON instead of plain text
    """
    level = logging.getLevelName(log_level.upper())

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(
        StructuredFormatter()
        if json_format
        else logging.Formatter("%(asctime)s %(levelname)-8s %(name)s [%(request_id)s] %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("storefront").setLevel(level)
    # Provider requests are logged by the identity client itself
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_request_id() -> str:
    """ID of the request currently being handled, or an empty string."""
    return request_id_var.get("")
