"""
Custom Exception Classes for Storefront Edge

This module defines custom exceptions for better error handling and
consistent error responses across the interception layer.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ErrorCode(str, Enum):
    """Machine-readable error codes returned in the error envelope."""

    AUTH_FAILED = "AUTH_FAILED"
    AUTH_PERMISSION_DENIED = "AUTH_PERMISSION_DENIED"
    IDENTITY_PROVIDER_UNAVAILABLE = "IDENTITY_PROVIDER_UNAVAILABLE"
    ROUTING_MISCONFIGURED = "ROUTING_MISCONFIGURED"
    ROUTE_UNKNOWN = "ROUTE_UNKNOWN"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class StorefrontError(Exception):
    """Base exception class for all storefront exceptions"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
        error_code: ErrorCode | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if error_code is not None:
            self.error_code = error_code
        super().__init__(self.message)


# ============================================================================
# Identity Provider Exceptions
# ============================================================================


class IdentityProviderError(StorefrontError):
    """Raised when the identity provider cannot be reached or answers with a server error"""

    error_code = ErrorCode.IDENTITY_PROVIDER_UNAVAILABLE

    def __init__(
        self,
        message: str = "Identity provider request failed",
        operation: str | None = None,
        upstream_status: int | None = None,
    ):
        details: dict[str, Any] = {}
        if operation:
            details["operation"] = operation
        if upstream_status is not None:
            details["upstream_status"] = upstream_status
        super().__init__(message=message, status_code=status.HTTP_502_BAD_GATEWAY, details=details)


# ============================================================================
# Routing Exceptions
# ============================================================================


class RoutingConfigurationError(StorefrontError):
    """Raised when the pathname table cannot be built"""

    error_code = ErrorCode.ROUTING_MISCONFIGURED

    def __init__(self, message: str, route_key: str | None = None):
        details = {"route_key": route_key} if route_key else {}
        super().__init__(message=message, details=details)


class UnknownRouteError(StorefrontError, LookupError):
    """Raised when a route key is not registered"""

    error_code = ErrorCode.ROUTE_UNKNOWN

    def __init__(self, route_key: str):
        super().__init__(
            message=f"Route '{route_key}' is not registered",
            details={"route_key": route_key},
        )
