"""Constants package for Storefront Edge."""

from .routes import (
    ADMIN_ROUTE,
    AUTH_ERROR_ROUTE,
    AUTH_PREFIX,
    DASHBOARD_ROUTE,
    EXCLUDED_PATH_PATTERN,
    INTERNAL_HEADER_PREFIX,
    LOCALE_HEADER,
    LOGIN_ROUTE,
    NEXT_PARAM,
    PROTECTED_ROUTE,
    REDIRECT_TO_PARAM,
    REWRITE_HEADER,
    ROUTE_HEADER,
    USER_ID_HEADER,
)

__all__ = [
    # Route keys
    "LOGIN_ROUTE",
    "AUTH_ERROR_ROUTE",
    "DASHBOARD_ROUTE",
    "PROTECTED_ROUTE",
    "ADMIN_ROUTE",
    "AUTH_PREFIX",
    # Query parameters
    "REDIRECT_TO_PARAM",
    "NEXT_PARAM",
    # Internal headers
    "INTERNAL_HEADER_PREFIX",
    "LOCALE_HEADER",
    "ROUTE_HEADER",
    "REWRITE_HEADER",
    "USER_ID_HEADER",
    # Matcher
    "EXCLUDED_PATH_PATTERN",
]
