"""
Protected-path classification

Decides whether a locale-stripped path needs an authenticated session.
Prefixes are matched on whole path segments, so ``/dashboards`` is public
while ``/dashboard`` and ``/dashboard/settings`` are not.
"""

from storefront.constants.routes import (
    ADMIN_ROUTE,
    AUTH_PREFIX,
    DASHBOARD_ROUTE,
    EXCLUDED_PATH_PATTERN,
    PROTECTED_ROUTE,
)
from storefront.i18n.routing import routing

# Every locale's spelling of the protected area, plus dashboard and admin
PROTECTED_PREFIXES: frozenset[str] = (
    routing.spellings(PROTECTED_ROUTE) | routing.spellings(DASHBOARD_ROUTE) | routing.spellings(ADMIN_ROUTE)
)


def is_under(path: str, prefix: str) -> bool:
    """True when ``path`` equals ``prefix`` or continues it with a ``/`` segment."""
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_protected_path(normalized_path: str) -> bool:
    if is_under(normalized_path, AUTH_PREFIX):
        return False
    return any(is_under(normalized_path, prefix) for prefix in PROTECTED_PREFIXES)


def should_intercept(path: str) -> bool:
    """Path matcher for the interception pipeline."""
    return EXCLUDED_PATH_PATTERN.search(path) is None
