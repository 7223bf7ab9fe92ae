"""
Exception handlers

Every error leaving the app, whether raised by a route or by the
interception middleware, is rendered as the same JSON envelope:

    {
        "error": {
            "status_code": 502,
            "message": "Identity provider returned a server error",
            "type": "Bad Gateway",
            "error_code": "IDENTITY_PROVIDER_UNAVAILABLE",
            "details": {"operation": "get_user", "upstream_status": 503},
            "path": "/dashboard"
        }
    }

``error_code``, ``details`` and ``path`` are omitted when empty.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.exceptions import ErrorCode, StorefrontError

logger = logging.getLogger(__name__)

ERROR_TYPES: dict[int, str] = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    422: "Validation Error",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}

HTTP_ERROR_CODES: dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION_FAILED,
    401: ErrorCode.AUTH_FAILED,
    403: ErrorCode.AUTH_PERMISSION_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    422: ErrorCode.VALIDATION_FAILED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.IDENTITY_PROVIDER_UNAVAILABLE,
}


def get_error_type(status_code: int) -> str:
    return ERROR_TYPES.get(status_code, "Error")


def get_http_error_code(status_code: int) -> str:
    return HTTP_ERROR_CODES.get(status_code, ErrorCode.UNKNOWN_ERROR).value


def create_error_response(
    status_code: int,
    message: str,
    error_code: str | ErrorCode | None = None,
    details: dict[str, Any] | None = None,
    path: str | None = None,
) -> JSONResponse:
    """Render the error envelope."""
    body: dict[str, Any] = {"status_code": status_code, "message": message, "type": get_error_type(status_code)}
    if error_code:
        body["error_code"] = ErrorCode(error_code).value
    if details:
        body["details"] = details
    if path:
        body["path"] = path
    return JSONResponse(status_code=status_code, content={"error": body})


async def storefront_exception_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        level,
        "%s on %s: %s",
        exc.error_code.value,
        request.url.path,
        exc.message,
        extra={"status_code": exc.status_code, "path": request.url.path, "details": exc.details},
    )
    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
        path=request.url.path,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.info("HTTP %d on %s: %s", exc.status_code, request.url.path, exc.detail)
    response = create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=get_http_error_code(exc.status_code),
        path=request.url.path,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def _field_name(loc: tuple[Any, ...]) -> str:
    # Request errors lead with where the value came from ("query", "body", ...)
    if loc and loc[0] in ("query", "body", "path", "header", "cookie"):
        loc = loc[1:]
    return ".".join(str(part) for part in loc)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError | PydanticValidationError
) -> JSONResponse:
    errors = [
        {
            "field": _field_name(error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info("Validation failed on %s: %s", request.url.path, errors)
    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code=ErrorCode.VALIDATION_FAILED,
        details={"validation_errors": errors},
        path=request.url.path,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler.

    Errors raised inside middleware skip the typed handlers and arrive here,
    so storefront errors are routed back to their own handler first.
    """
    if isinstance(exc, StorefrontError):
        return await storefront_exception_handler(request, exc)

    logger.exception("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR,
        path=request.url.path,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
