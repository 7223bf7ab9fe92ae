"""
Localized pages

Every public URL reaches these handlers rewritten to ``/<locale><route key>``
by InterceptMiddleware.  Page rendering lives elsewhere; the handler reports
which route and locale the request resolved to.
"""

from fastapi import APIRouter, HTTPException, Request, status

from storefront.constants.routes import USER_ID_HEADER
from storefront.i18n.routing import routing

router = APIRouter(tags=["Pages"])


@router.get("/{locale}")
@router.get("/{locale}/{page_path:path}")
async def render_page(request: Request, locale: str, page_path: str = ""):
    route_key = getattr(request.state, "route_key", None)
    if not routing.is_locale(locale) or route_key is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Page not found")

    return {
        "locale": locale,
        "route": route_key,
        "params": request.state.route_params,
        "path": request.state.original_path,
        "user_id": request.headers.get(USER_ID_HEADER),
    }
