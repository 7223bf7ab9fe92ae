"""
Request Interception Middleware

Composes the two pipeline stages:

  request → session guard ──redirect──→ response
                 │
                 └─→ locale routing → merge → rewrite → handler → response

The guard's redirect short-circuits the pipeline, so a denied request never
reaches locale routing.  Otherwise the guard's cookies and internal headers
are merged onto the routing result before it is applied.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import unquote

from starlette.middleware.base import BaseHTTPMiddleware

from storefront.constants.routes import INTERNAL_HEADER_PREFIX
from storefront.middleware.locale_routing import handle_locale_routing
from storefront.middleware.response import StageResponse
from storefront.middleware.session_guard import update_session
from storefront.services.identity_service import IdentityProvider
from storefront.utils.route_protection import should_intercept

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import Request
    from starlette.responses import Response
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


def merge_stage_responses(guard: StageResponse, routed: StageResponse) -> StageResponse:
    """Carry the guard's cookies and internal headers onto the routing result."""
    for cookie in guard.cookies.values():
        routed.set_cookie(cookie)
    for name, value in guard.headers.items():
        if name.startswith(INTERNAL_HEADER_PREFIX):
            routed.set_header(name, value)
    return routed


async def run_pipeline(request: Request, identity_provider: IdentityProvider | None) -> StageResponse:
    guard = await update_session(request, identity_provider)
    if guard.is_redirect:
        return guard
    return merge_stage_responses(guard, handle_locale_routing(request))


def _apply_to_request(request: Request, result: StageResponse) -> None:
    request.state.original_path = request.url.path
    for name, value in result.state.items():
        setattr(request.state, name, value)

    # Client-sent internal headers are dropped before ours are added
    headers = [
        (key, value)
        for key, value in request.scope["headers"]
        if not key.decode("latin-1").lower().startswith(INTERNAL_HEADER_PREFIX)
    ]
    headers.extend(
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in result.headers.items()
        if name.startswith(INTERNAL_HEADER_PREFIX)
    )
    request.scope["headers"] = headers

    if result.rewrite_path:
        request.scope["path"] = unquote(result.rewrite_path)
        request.scope["raw_path"] = result.rewrite_path.encode("latin-1")


def _apply_to_response(response: Response, result: StageResponse) -> None:
    for name, value in result.headers.items():
        if name != "location" and not name.startswith(INTERNAL_HEADER_PREFIX):
            response.headers[name] = value
    for cookie in result.cookies.values():
        cookie.apply(response)


class InterceptMiddleware(BaseHTTPMiddleware):
    """Run the session guard and locale routing for every matched request."""

    def __init__(self, app: ASGIApp, identity_provider: IdentityProvider | None = None):
        super().__init__(app)
        self.identity_provider = identity_provider

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not should_intercept(request.url.path):
            return await call_next(request)

        result = await run_pipeline(request, self.identity_provider)
        if result.is_redirect:
            logger.debug("Redirecting %s to %s", request.url.path, result.location)
            return result.to_redirect_response()

        _apply_to_request(request, result)
        logger.debug("Rewrote %s to %s", request.state.original_path, result.rewrite_path)
        response = await call_next(request)
        _apply_to_response(response, result)
        return response
