"""
Session Guard

First stage of the interception pipeline.  Every request refreshes the
session claims (which also rotates the session cookie); requests for
protected paths additionally ask the identity provider for the current
user and are redirected to the localized login page when there is none.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from fastapi import Request

from storefront.config import settings
from storefront.constants.routes import LOGIN_ROUTE, REDIRECT_TO_PARAM, USER_ID_HEADER
from storefront.i18n.locale import resolve_locale
from storefront.i18n.routing import NormalizedPath, routing
from storefront.middleware.response import ResponseCookie, StageResponse
from storefront.services.identity_service import IdentityProvider
from storefront.utils.redirects import absolute_url, original_uri
from storefront.utils.route_protection import is_protected_path

logger = logging.getLogger(__name__)


def effective_cookies(request_cookies: Mapping[str, str], rotated: list[ResponseCookie]) -> dict[str, str]:
    """Request cookies as later provider calls must see them after rotation."""
    cookies = dict(request_cookies)
    for cookie in rotated:
        if cookie.max_age == 0:
            cookies.pop(cookie.name, None)
        else:
            cookies[cookie.name] = cookie.value
    return cookies


def login_redirect(request: Request, normalized: NormalizedPath, carried: StageResponse) -> StageResponse:
    """Redirect to the localized login page, keeping cookies already set."""
    if normalized.had_explicit_prefix:
        locale = normalized.locale
    else:
        locale = resolve_locale(request.cookies, request.headers.get("accept-language"))

    login_path = routing.localize(LOGIN_ROUTE, locale)
    response = StageResponse.redirect(absolute_url(request, login_path, {REDIRECT_TO_PARAM: original_uri(request)}))
    response.set_cookies(list(carried.cookies.values()))
    return response


async def update_session(request: Request, identity_provider: IdentityProvider | None) -> StageResponse:
    response = StageResponse.next()
    normalized = routing.normalize(request.url.path)
    protected = is_protected_path(normalized.path)

    if identity_provider is None or not settings.identity_provider_configured:
        if protected and settings.fail_closed_without_identity_provider:
            logger.warning("Identity provider not configured; denying protected path %s", request.url.path)
            return login_redirect(request, normalized, response)
        return response

    refreshed = await identity_provider.refresh_claims(request.cookies)
    response.set_cookies(refreshed.cookies)

    if not protected:
        return response

    user = await identity_provider.get_user(effective_cookies(request.cookies, refreshed.cookies))
    if user:
        response.set_header(USER_ID_HEADER, str(user.get("id", "")))
        return response

    logger.info("No authenticated user for %s; redirecting to login", request.url.path)
    return login_redirect(request, normalized, response)
