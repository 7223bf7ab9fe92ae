import logging

import uvicorn
from fastapi import FastAPI

from storefront.config import settings
from storefront.exception_handlers import register_exception_handlers
from storefront.middleware.intercept import InterceptMiddleware
from storefront.middleware.logging import AccessLogMiddleware, setup_structured_logging
from storefront.routes import auth, locales, pages
from storefront.services.identity_service import IdentityProvider, create_identity_provider

logger = logging.getLogger(__name__)


def create_app(identity_provider: IdentityProvider | None = None) -> FastAPI:
    """Create the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="Locale routing and session guard for the vehicle marketplace",
        debug=settings.debug,
        version=settings.app_version,
    )

    if identity_provider is None:
        identity_provider = create_identity_provider()
    app.state.identity_provider = identity_provider

    # Starlette middleware is LIFO: logging wraps interception
    app.add_middleware(InterceptMiddleware, identity_provider=identity_provider)
    app.add_middleware(AccessLogMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(locales.router, prefix="/api/i18n")

    @app.get("/health", tags=["Root"])
    async def health():
        return {"status": "ok", "identity_provider_configured": settings.identity_provider_configured}

    # Catch-all localized pages go last
    app.include_router(pages.router)

    if settings.debug:
        logger.info(f"Running in {settings.environment} mode")

    return app


setup_structured_logging(settings.log_level, json_format=settings.log_format == "json")
app = create_app()


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.debug)
