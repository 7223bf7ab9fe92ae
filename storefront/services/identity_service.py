"""
Identity provider client

Talks to a Supabase Auth (GoTrue) server over its REST API.  The session
lives entirely in cookies owned by the provider's conventions; this module
only reads them, asks the provider to refresh or verify them, and returns
the cookies the provider wants rotated.  Nothing is cached between requests.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from jose import JWTError, jwt

from storefront.config import settings
from storefront.exceptions import IdentityProviderError
from storefront.middleware.response import ResponseCookie

logger = logging.getLogger(__name__)

BASE64_PREFIX = "base64-"
MAX_CHUNK_SIZE = 3180
SESSION_COOKIE_MAX_AGE = 400 * 24 * 60 * 60


@dataclass
class ClaimsResult:
    claims: dict[str, Any] | None
    cookies: list[ResponseCookie] = field(default_factory=list)


@dataclass
class ExchangeResult:
    session: dict[str, Any] | None = None
    error: str | None = None
    cookies: list[ResponseCookie] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.session is not None and self.error is None


class IdentityProvider(Protocol):
    async def refresh_claims(self, cookies: Mapping[str, str]) -> ClaimsResult: ...

    async def get_user(self, cookies: Mapping[str, str]) -> dict[str, Any] | None: ...

    async def exchange_code(self, code: str, cookies: Mapping[str, str]) -> ExchangeResult: ...


class SessionCookieCodec:
    """Reads and writes provider values stored in (possibly chunked) cookies.

    Values are JSON, optionally wrapped as ``base64-<base64url>``, and split
    into ``<key>.0``, ``<key>.1``, ... once they outgrow a single cookie.
    """

    def __init__(self, storage_key: str, secure: bool = False):
        self.storage_key = storage_key
        self.secure = secure

    @property
    def code_verifier_key(self) -> str:
        return f"{self.storage_key}-code-verifier"

    @staticmethod
    def _chunk_names(key: str, cookies: Mapping[str, str]) -> list[str]:
        names = [key] if key in cookies else []
        index = 0
        while f"{key}.{index}" in cookies:
            names.append(f"{key}.{index}")
            index += 1
        return names

    def read_value(self, cookies: Mapping[str, str], key: str) -> Any:
        if key in cookies:
            raw = cookies[key]
        else:
            raw = "".join(cookies[name] for name in self._chunk_names(key, cookies))
        if not raw:
            return None
        if raw.startswith(BASE64_PREFIX):
            encoded = raw[len(BASE64_PREFIX) :]
            try:
                raw = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                logger.warning("Discarding undecodable cookie %s", key)
                return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    def read(self, cookies: Mapping[str, str]) -> dict[str, Any] | None:
        session = self.read_value(cookies, self.storage_key)
        return session if isinstance(session, dict) else None

    def read_code_verifier(self, cookies: Mapping[str, str]) -> str | None:
        value = self.read_value(cookies, self.code_verifier_key)
        if not isinstance(value, str) or not value:
            return None
        # Password-recovery flows store "<verifier>/PASSWORD_RECOVERY"
        return value.split("/", 1)[0]

    def _cookie(self, name: str, value: str) -> ResponseCookie:
        return ResponseCookie(
            name=name,
            value=value,
            max_age=SESSION_COOKIE_MAX_AGE,
            secure=self.secure,
            httponly=False,
            samesite="lax",
        )

    def write(self, session: Mapping[str, Any], cookies: Mapping[str, str]) -> list[ResponseCookie]:
        payload = json.dumps(session, separators=(",", ":")).encode("utf-8")
        encoded = BASE64_PREFIX + base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")
        chunks = [encoded[i : i + MAX_CHUNK_SIZE] for i in range(0, len(encoded), MAX_CHUNK_SIZE)]

        if len(chunks) == 1:
            written = [self._cookie(self.storage_key, chunks[0])]
        else:
            written = [self._cookie(f"{self.storage_key}.{i}", chunk) for i, chunk in enumerate(chunks)]

        names = {cookie.name for cookie in written}
        stale = [
            ResponseCookie.expired(name)
            for name in self._chunk_names(self.storage_key, cookies)
            if name not in names
        ]
        return written + stale

    def clear(self, cookies: Mapping[str, str]) -> list[ResponseCookie]:
        return [ResponseCookie.expired(name) for name in self._chunk_names(self.storage_key, cookies)]


class SupabaseIdentityProvider:
    """``IdentityProvider`` backed by the Supabase Auth REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        codec: SessionCookieCodec,
        jwt_secret: str | None = None,
        refresh_margin_seconds: int = 10,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.auth_url = f"{base_url.rstrip('/')}/auth/v1"
        self.api_key = api_key
        self.codec = codec
        self.jwt_secret = jwt_secret
        self.refresh_margin_seconds = refresh_margin_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, transport: httpx.AsyncBaseTransport | None = None) -> SupabaseIdentityProvider:
        return cls(
            base_url=settings.supabase_url,
            api_key=settings.supabase_anon_key,
            codec=SessionCookieCodec(settings.session_storage_key, secure=settings.session_cookie_secure),
            jwt_secret=settings.supabase_jwt_secret,
            refresh_margin_seconds=settings.session_refresh_margin_seconds,
            transport=transport,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.auth_url,
            headers={"apikey": self.api_key},
            transport=self._transport,
        )

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Identity provider %s failed: %s", operation, e)
            raise IdentityProviderError(f"Failed to contact identity provider: {e}", operation=operation) from e

        if response.status_code >= 500:
            logger.error("Identity provider %s returned %d", operation, response.status_code)
            raise IdentityProviderError(
                "Identity provider returned a server error",
                operation=operation,
                upstream_status=response.status_code,
            )
        return response

    def _json_body(self, operation: str, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.error("Identity provider %s returned an unreadable body", operation)
            raise IdentityProviderError(
                "Identity provider returned an invalid response",
                operation=operation,
                upstream_status=response.status_code,
            )
        return body

    def decode_claims(self, access_token: str | None) -> dict[str, Any] | None:
        if not access_token:
            return None
        try:
            if self.jwt_secret:
                return jwt.decode(
                    access_token,
                    self.jwt_secret,
                    algorithms=["HS256"],
                    audience="authenticated",
                    options={"verify_exp": False},
                )
            return jwt.get_unverified_claims(access_token)
        except JWTError as e:
            logger.info("Rejected session access token: %s", e)
            return None

    def _is_expiring(self, claims: Mapping[str, Any]) -> bool:
        expires_at = claims.get("exp")
        if expires_at is None:
            return True
        return float(expires_at) <= time.time() + self.refresh_margin_seconds

    async def refresh_claims(self, cookies: Mapping[str, str]) -> ClaimsResult:
        """Validate the session token, rotating it when it is about to expire."""
        session = self.codec.read(cookies)
        if session is None:
            return ClaimsResult(claims=None)

        claims = self.decode_claims(session.get("access_token"))
        if claims is not None and not self._is_expiring(claims):
            return ClaimsResult(claims=claims)

        refresh_token = session.get("refresh_token")
        if not refresh_token:
            return ClaimsResult(claims=None, cookies=self.codec.clear(cookies))

        response = await self._request(
            "refresh_session",
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if response.status_code != 200:
            logger.info("Session refresh rejected with status %d; clearing session", response.status_code)
            return ClaimsResult(claims=None, cookies=self.codec.clear(cookies))

        new_session = self._json_body("refresh_session", response)
        logger.debug("Session rotated for subject %s", (claims or {}).get("sub"))
        return ClaimsResult(
            claims=self.decode_claims(new_session.get("access_token")),
            cookies=self.codec.write(new_session, cookies),
        )

    async def get_user(self, cookies: Mapping[str, str]) -> dict[str, Any] | None:
        """Authoritative check: ask the provider who owns the access token."""
        session = self.codec.read(cookies)
        access_token = session.get("access_token") if session else None
        if not access_token:
            return None

        response = await self._request(
            "get_user",
            "GET",
            "/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code != 200:
            return None

        user = self._json_body("get_user", response)
        return user if user.get("id") else None

    async def exchange_code(self, code: str, cookies: Mapping[str, str]) -> ExchangeResult:
        """Trade a PKCE authorization code for a session."""
        code_verifier = self.codec.read_code_verifier(cookies)
        if not code_verifier:
            return ExchangeResult(error="PKCE code verifier not found in storage")

        response = await self._request(
            "exchange_code",
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )
        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {}
            message = body.get("error_description") or body.get("msg") or f"HTTP {response.status_code}"
            return ExchangeResult(error=message)

        session = self._json_body("exchange_code", response)
        return ExchangeResult(
            session=session,
            cookies=self.codec.write(session, cookies) + [ResponseCookie.expired(self.codec.code_verifier_key)],
        )


def create_identity_provider() -> IdentityProvider | None:
    """Build the provider client from settings, or None when it is not configured."""
    if not settings.identity_provider_configured:
        logger.warning("Identity provider is not configured; session checks are disabled")
        return None
    return SupabaseIdentityProvider.from_settings()
