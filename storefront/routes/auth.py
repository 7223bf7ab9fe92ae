"""
Auth callback

The identity provider redirects here after login with a one-time code.  The
code is exchanged for a session and the visitor is sent on to the localized
dashboard, or to a validated ``next`` path when one was supplied.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse

from storefront.config import settings
from storefront.constants.routes import AUTH_ERROR_ROUTE, DASHBOARD_ROUTE, NEXT_PARAM
from storefront.exceptions import IdentityProviderError
from storefront.i18n.locale import resolve_locale
from storefront.i18n.routing import routing
from storefront.services.identity_service import ExchangeResult, IdentityProvider
from storefront.utils.redirects import absolute_url, localize_next_path, request_origin

router = APIRouter(tags=["Auth"])
logger = logging.getLogger(__name__)


def get_identity_provider(request: Request) -> IdentityProvider | None:
    return getattr(request.app.state, "identity_provider", None)


async def complete_auth_callback(
    request: Request,
    identity_provider: IdentityProvider | None,
    code: str | None,
    has_error: bool = False,
    next_path: str | None = None,
) -> RedirectResponse:
    # No session exists yet, so the locale comes from cookies and headers
    locale = resolve_locale(request.cookies, request.headers.get("accept-language"))
    error_url = absolute_url(request, routing.localize(AUTH_ERROR_ROUTE, locale))

    if not code or has_error or identity_provider is None or not settings.identity_provider_configured:
        logger.info(
            "Auth callback cannot complete (code=%s, error=%s, configured=%s)",
            bool(code),
            has_error,
            settings.identity_provider_configured,
        )
        return RedirectResponse(url=error_url, status_code=307)

    destination = absolute_url(request, routing.localize(DASHBOARD_ROUTE, locale))
    if next_path is not None:
        localized = localize_next_path(next_path, locale)
        if localized is None:
            logger.debug("Ignoring unsafe next path %r", next_path)
        else:
            destination = request_origin(request) + localized

    try:
        result = await identity_provider.exchange_code(code, request.cookies)
    except IdentityProviderError as e:
        # Mid-login the visitor gets the error page, not an error envelope
        result = ExchangeResult(error=e.message)
    if not result.ok:
        logger.warning("Authorization code exchange failed: %s", result.error)
        destination = error_url

    response = RedirectResponse(url=destination, status_code=307)
    for cookie in result.cookies:
        cookie.apply(response)
    return response


@router.get("/auth/callback")
async def auth_callback(
    request: Request,
    code: str | None = None,
    next_path: str | None = Query(default=None, alias=NEXT_PARAM),
    identity_provider: IdentityProvider | None = Depends(get_identity_provider),
):
    return await complete_auth_callback(
        request,
        identity_provider,
        code=code,
        has_error="error" in request.query_params,
        next_path=next_path,
    )
