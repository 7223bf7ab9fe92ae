"""
i18n (Internationalization) package

Provides the localized routing table, path localization and locale
resolution from cookies and the Accept-Language header.
"""

from .locale import (
    LANGUAGE_NAMES,
    get_language_info,
    locale_from_cookies,
    parse_accept_language,
    resolve_locale,
)
from .routing import LocalePrefix, NormalizedPath, RouteMatch, Routing, routing

__all__ = [
    "LANGUAGE_NAMES",
    "LocalePrefix",
    "NormalizedPath",
    "RouteMatch",
    "Routing",
    "get_language_info",
    "locale_from_cookies",
    "parse_accept_language",
    "resolve_locale",
    "routing",
]
