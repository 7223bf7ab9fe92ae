from urllib.parse import urlsplit

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Storefront Edge"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # "text" or "json"

    # Identity provider (Supabase Auth / GoTrue)
    supabase_url: str | None = None
    supabase_anon_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("supabase_anon_key", "supabase_publishable_or_anon_key"),
    )
    supabase_jwt_secret: str | None = None
    session_cookie_name: str | None = None
    session_cookie_secure: bool = False
    session_refresh_margin_seconds: int = 10
    fail_closed_without_identity_provider: bool = False

    # Locale routing
    locale_cookie_names: list[str] = ["NEXT_LOCALE", "locale", "preferred_locale"]
    locale_cookie_max_age: int = 60 * 60 * 24 * 365
    locale_detection: bool = False
    alternate_links: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def identity_provider_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)

    @property
    def locale_cookie_name(self) -> str:
        return self.locale_cookie_names[0]

    @property
    def session_storage_key(self) -> str:
        """Name of the cookie holding the provider session.

        Follows the provider's own convention (``sb-<project-ref>-auth-token``)
        unless overridden explicitly.
        """
        if self.session_cookie_name:
            return self.session_cookie_name
        host = urlsplit(self.supabase_url or "").hostname or "local"
        return f"sb-{host.split('.')[0]}-auth-token"


settings = Settings()
