"""
Language switcher API

    GET /api/i18n/languages          → supported languages (public)
    GET /api/i18n/switch?path&locale → the same page in another locale

Registered BEFORE the pages router in main.py so the catch-all page route
does not shadow it.
"""

from urllib.parse import urlsplit

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from storefront.i18n.locale import get_language_info
from storefront.i18n.routing import routing
from storefront.utils.redirects import is_safe_next_path

router = APIRouter(tags=["Internationalization"])


class LanguageInfo(BaseModel):
    code: str
    name: str
    is_default: bool


class SwitchResult(BaseModel):
    locale: str
    path: str


@router.get("/languages", response_model=list[LanguageInfo])
async def list_supported_languages() -> list[LanguageInfo]:
    """List all supported languages (public, no auth)."""
    return [LanguageInfo(**get_language_info(code)) for code in routing.locales]


@router.get("/switch", response_model=SwitchResult)
async def switch_language(
    path: str = Query(..., description="Current page path, e.g. /auth/ingresar"),
    locale: str = Query(..., description="Target locale"),
) -> SwitchResult:
    if not routing.is_locale(locale):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Locale '{locale}' is not supported")
    if not is_safe_next_path(path):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Path must be a same-origin path")
    parts = urlsplit(path)
    switched = routing.switch_locale(parts.path, locale)
    return SwitchResult(locale=locale, path=f"{switched}?{parts.query}" if parts.query else switched)
