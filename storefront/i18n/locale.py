"""
Locale helpers

Pure functions for choosing the visitor's locale:
- Accept-Language header parsing (header order, q-values ignored)
- Cookie-then-header locale resolution
- Language metadata lookup for the language switcher
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from storefront.config import settings
from storefront.i18n.routing import routing

# ── Constants ─────────────────────────────────────────────────────────────────

# Human-readable names for the storefront locales
LANGUAGE_NAMES: dict[str, str] = {
    "es": "Español",
    "en": "English",
}


# ── Public helpers ────────────────────────────────────────────────────────────


def parse_accept_language(header: str | None, supported: Sequence[str]) -> str | None:
    """Return the first supported locale named by an Accept-Language header.

    Algorithm:
    1. Split the header on commas and keep the tag before any ``;`` parameter.
    2. Walk the tags in header order (q-values are not used for ordering).
    3. For each tag, try a case-insensitive exact match in ``supported``,
       then its primary subtag ("fr-CA" → "fr").

    Args:
        header:    Value of the Accept-Language HTTP header, e.g.
                   "fr-CA,en;q=0.8".
        supported: Locale codes the storefront serves.

    Returns:
        The matching locale from ``supported``, or None.
    """
    if not header:
        return None

    supported_lower = [s.lower() for s in supported]

    for part in header.split(","):
        tag = part.split(";", 1)[0].strip().lower()
        if not tag:
            continue
        if tag in supported_lower:
            return supported[supported_lower.index(tag)]
        base = tag.split("-")[0]
        if base in supported_lower:
            return supported[supported_lower.index(base)]

    return None


def locale_from_cookies(cookies: Mapping[str, str], cookie_names: Iterable[str] | None = None) -> str | None:
    """Return the first cookie value (in priority order) that is a supported locale."""
    for name in cookie_names if cookie_names is not None else settings.locale_cookie_names:
        value = cookies.get(name)
        if value and routing.is_locale(value):
            return value
    return None


def resolve_locale(cookies: Mapping[str, str], accept_language: str | None) -> str:
    """Pick the locale for a request that carries no locale in its path.

    Cookie preference wins over the Accept-Language header, and the default
    locale is the fallback.
    """
    return (
        locale_from_cookies(cookies)
        or parse_accept_language(accept_language, routing.locales)
        or routing.default_locale
    )


def get_language_info(locale: str) -> dict[str, str | bool]:
    """Return a metadata dict describing the given locale."""
    return {
        "code": locale,
        "name": LANGUAGE_NAMES.get(locale, locale),
        "is_default": locale == routing.default_locale,
    }
