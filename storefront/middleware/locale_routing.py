"""
Locale Routing

Second stage of the interception pipeline.  Maps the public, localized URL
onto the internal ``/<locale><route key>`` path the application serves:

  /auth/ingresar       → /es/auth/login
  /en/auth/login       → /en/auth/login
  /vehiculos/model-y   → /es/vehicles/[slug]  (slug="model-y")

Detection order for paths without a locale prefix:
1. ``LOCALE_DETECTION`` on: cookies, then Accept-Language (see resolve_locale)
2. otherwise: the default locale, which owns unprefixed URLs
"""

from __future__ import annotations

from fastapi import Request

from storefront.config import settings
from storefront.constants.routes import LOCALE_HEADER, REWRITE_HEADER, ROUTE_HEADER
from storefront.i18n.locale import resolve_locale
from storefront.i18n.routing import LocalePrefix, RouteMatch, routing
from storefront.middleware.response import ResponseCookie, StageResponse
from storefront.utils.redirects import request_origin


def _redirect_keeping_query(request: Request, path: str) -> StageResponse:
    query = request.url.query
    return StageResponse.redirect(request_origin(request) + (f"{path}?{query}" if query else path))


def alternate_link_header(request: Request, found: RouteMatch) -> str:
    """``Link`` header listing every locale's URL for the matched route."""
    origin = request_origin(request)
    alternates = routing.alternates(found.route_key, found.params)
    links = [f'<{origin}{path}>; rel="alternate"; hreflang="{locale}"' for locale, path in alternates.items()]
    links.append(f'<{origin}{alternates[routing.default_locale]}>; rel="alternate"; hreflang="x-default"')
    return ", ".join(links)


def handle_locale_routing(request: Request) -> StageResponse:
    normalized = routing.normalize(request.url.path)

    # The default locale is served without a prefix: /es/precios → /precios
    if (
        normalized.had_explicit_prefix
        and normalized.locale == routing.default_locale
        and routing.locale_prefix is LocalePrefix.AS_NEEDED
    ):
        return _redirect_keeping_query(request, normalized.path)

    if normalized.had_explicit_prefix:
        locale = normalized.locale
    elif settings.locale_detection:
        locale = resolve_locale(request.cookies, request.headers.get("accept-language"))
    else:
        locale = routing.default_locale

    if not normalized.had_explicit_prefix and routing.with_prefix(normalized.path, locale) != normalized.path:
        redirect = _redirect_keeping_query(request, routing.switch_locale(normalized.path, locale))
        if settings.locale_detection:
            redirect.set_cookie(_locale_cookie(locale))
        return redirect

    found = routing.match(normalized.path, locale)
    if found is not None:
        internal = routing.internal_path(found.route_key, locale, found.params)
    else:
        internal = f"/{locale}" if normalized.path == "/" else f"/{locale}{normalized.path}"

    response = StageResponse.rewrite(internal)
    response.set_header(LOCALE_HEADER, locale)
    response.set_header(REWRITE_HEADER, internal)
    response.state.update(
        locale=locale,
        route_key=found.route_key if found else None,
        route_params=found.params if found else {},
    )
    if found is not None:
        response.set_header(ROUTE_HEADER, found.route_key)
        if settings.alternate_links:
            response.set_header("link", alternate_link_header(request, found))

    # Detection off leaves the locale cookie alone
    if settings.locale_detection and request.cookies.get(settings.locale_cookie_name) != locale:
        response.set_cookie(_locale_cookie(locale))

    return response


def _locale_cookie(locale: str) -> ResponseCookie:
    return ResponseCookie(
        name=settings.locale_cookie_name,
        value=locale,
        max_age=settings.locale_cookie_max_age,
        samesite="lax",
    )
