"""
Identity provider client tests

The Supabase client is exercised against httpx.MockTransport handlers; no
network access is needed.
"""

import base64
import json
import time

import httpx
import pytest
from jose import jwt

from storefront.exceptions import IdentityProviderError
from storefront.services.identity_service import (
    SessionCookieCodec,
    SupabaseIdentityProvider,
    create_identity_provider,
)

STORAGE_KEY = "sb-example-auth-token"
JWT_SECRET = "super-secret-jwt-token-with-at-least-32-characters"


def _token(sub="user-1", expires_in=3600, secret=JWT_SECRET):
    claims = {"sub": sub, "aud": "authenticated", "exp": int(time.time()) + expires_in}
    return jwt.encode(claims, secret, algorithm="HS256")


def _session(access_token, refresh_token="refresh-1"):
    return {"access_token": access_token, "refresh_token": refresh_token, "token_type": "bearer"}


def _cookies_for(session):
    codec = SessionCookieCodec(STORAGE_KEY)
    return {cookie.name: cookie.value for cookie in codec.write(session, {})}


def _provider(handler, jwt_secret=JWT_SECRET):
    return SupabaseIdentityProvider(
        base_url="https://example.supabase.co",
        api_key="anon-key",
        codec=SessionCookieCodec(STORAGE_KEY),
        jwt_secret=jwt_secret,
        transport=httpx.MockTransport(handler),
    )


def _unreachable(request):
    raise AssertionError(f"Unexpected request to {request.url}")


class TestSessionCookieCodec:
    def test_write_then_read(self):
        codec = SessionCookieCodec(STORAGE_KEY)
        session = _session("token")

        cookies = codec.write(session, {})

        assert [cookie.name for cookie in cookies] == [STORAGE_KEY]
        assert cookies[0].value.startswith("base64-")
        assert codec.read({STORAGE_KEY: cookies[0].value}) == session

    def test_large_session_is_chunked(self):
        codec = SessionCookieCodec(STORAGE_KEY)
        session = _session("token") | {"user": {"metadata": "x" * 3000}}

        cookies = codec.write(session, {})

        assert [cookie.name for cookie in cookies] == [f"{STORAGE_KEY}.0", f"{STORAGE_KEY}.1"]
        assert all(len(cookie.value) <= 3180 for cookie in cookies)
        assert codec.read({cookie.name: cookie.value for cookie in cookies}) == session

    def test_stale_chunks_are_expired(self):
        codec = SessionCookieCodec(STORAGE_KEY)

        cookies = codec.write(_session("token"), {f"{STORAGE_KEY}.0": "a", f"{STORAGE_KEY}.1": "b"})

        expired = {cookie.name for cookie in cookies if cookie.max_age == 0}
        assert expired == {f"{STORAGE_KEY}.0", f"{STORAGE_KEY}.1"}

    def test_plain_json_value(self):
        codec = SessionCookieCodec(STORAGE_KEY)

        assert codec.read({STORAGE_KEY: json.dumps(_session("token"))}) == _session("token")

    def test_garbage_value_is_not_a_session(self):
        codec = SessionCookieCodec(STORAGE_KEY)

        assert codec.read({STORAGE_KEY: "not-json"}) is None
        assert codec.read({STORAGE_KEY: "base64-%%%"}) is None
        assert codec.read({}) is None

    def test_code_verifier(self):
        codec = SessionCookieCodec(STORAGE_KEY)
        encoded = base64.urlsafe_b64encode(b'"verifier-123/PASSWORD_RECOVERY"').decode().rstrip("=")

        assert codec.read_code_verifier({codec.code_verifier_key: f"base64-{encoded}"}) == "verifier-123"
        assert codec.read_code_verifier({}) is None

    def test_clear(self):
        codec = SessionCookieCodec(STORAGE_KEY)

        cleared = codec.clear({STORAGE_KEY: "x", "other": "y"})

        assert [(cookie.name, cookie.max_age) for cookie in cleared] == [(STORAGE_KEY, 0)]


class TestRefreshClaims:
    @pytest.mark.asyncio
    async def test_no_session(self):
        result = await _provider(_unreachable).refresh_claims({})

        assert result.claims is None
        assert result.cookies == []

    @pytest.mark.asyncio
    async def test_valid_token_needs_no_network(self):
        cookies = _cookies_for(_session(_token()))

        result = await _provider(_unreachable).refresh_claims(cookies)

        assert result.claims["sub"] == "user-1"
        assert result.cookies == []

    @pytest.mark.asyncio
    async def test_unverified_claims_without_secret(self):
        cookies = _cookies_for(_session(_token(secret="some-other-secret")))

        result = await _provider(_unreachable, jwt_secret=None).refresh_claims(cookies)

        assert result.claims["sub"] == "user-1"

    @pytest.mark.asyncio
    async def test_expiring_token_is_rotated(self):
        new_session = _session(_token(sub="user-1"), refresh_token="refresh-2")

        def handler(request):
            assert request.url.path == "/auth/v1/token"
            assert request.url.params["grant_type"] == "refresh_token"
            assert request.headers["apikey"] == "anon-key"
            assert json.loads(request.content) == {"refresh_token": "refresh-1"}
            return httpx.Response(200, json=new_session)

        cookies = _cookies_for(_session(_token(expires_in=-60)))

        result = await _provider(handler).refresh_claims(cookies)

        assert result.claims["sub"] == "user-1"
        rotated = {cookie.name: cookie.value for cookie in result.cookies}
        assert SessionCookieCodec(STORAGE_KEY).read(rotated) == new_session

    @pytest.mark.asyncio
    async def test_bad_signature_triggers_refresh(self):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(400, json={"error": "invalid_grant"})

        cookies = _cookies_for(_session(_token(secret="forged-secret")))

        result = await _provider(handler).refresh_claims(cookies)

        assert calls == ["/auth/v1/token"]
        assert result.claims is None
        assert [(cookie.name, cookie.max_age) for cookie in result.cookies] == [(STORAGE_KEY, 0)]

    @pytest.mark.asyncio
    async def test_missing_refresh_token_clears_session(self):
        cookies = _cookies_for(_session(_token(expires_in=-60), refresh_token=None))

        result = await _provider(_unreachable).refresh_claims(cookies)

        assert result.claims is None
        assert result.cookies[0].max_age == 0

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        cookies = _cookies_for(_session(_token(expires_in=-60)))

        with pytest.raises(IdentityProviderError) as exc_info:
            await _provider(lambda request: httpx.Response(503)).refresh_claims(cookies)

        assert exc_info.value.status_code == 502
        assert exc_info.value.details == {"operation": "refresh_session", "upstream_status": 503}

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        cookies = _cookies_for(_session(_token(expires_in=-60)))

        with pytest.raises(IdentityProviderError):
            await _provider(handler).refresh_claims(cookies)

    @pytest.mark.asyncio
    async def test_unreadable_rotation_body_raises(self):
        cookies = _cookies_for(_session(_token(expires_in=-60)))

        with pytest.raises(IdentityProviderError) as exc_info:
            await _provider(lambda request: httpx.Response(200, text="<html>oops</html>")).refresh_claims(cookies)

        assert exc_info.value.details == {"operation": "refresh_session", "upstream_status": 200}


class TestGetUser:
    @pytest.mark.asyncio
    async def test_returns_user(self):
        token = _token()

        def handler(request):
            assert request.url.path == "/auth/v1/user"
            assert request.headers["authorization"] == f"Bearer {token}"
            return httpx.Response(200, json={"id": "user-1", "email": "driver@example.com"})

        user = await _provider(handler).get_user(_cookies_for(_session(token)))

        assert user == {"id": "user-1", "email": "driver@example.com"}

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        user = await _provider(lambda request: httpx.Response(401, json={"msg": "invalid JWT"})).get_user(
            _cookies_for(_session(_token()))
        )

        assert user is None

    @pytest.mark.asyncio
    async def test_no_session(self):
        assert await _provider(_unreachable).get_user({}) is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        with pytest.raises(IdentityProviderError):
            await _provider(lambda request: httpx.Response(500)).get_user(_cookies_for(_session(_token())))

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        provider = _provider(lambda request: httpx.Response(200, json=["user-1"]))

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.get_user(_cookies_for(_session(_token())))

        assert exc_info.value.details["operation"] == "get_user"


class TestExchangeCode:
    @pytest.mark.asyncio
    async def test_successful_exchange(self):
        session = _session(_token())
        codec = SessionCookieCodec(STORAGE_KEY)

        def handler(request):
            assert request.url.params["grant_type"] == "pkce"
            assert json.loads(request.content) == {"auth_code": "abc123", "code_verifier": "verifier-123"}
            return httpx.Response(200, json=session)

        result = await _provider(handler).exchange_code("abc123", {codec.code_verifier_key: '"verifier-123"'})

        assert result.ok
        assert result.session == session
        names = {cookie.name: cookie.max_age for cookie in result.cookies}
        assert names[STORAGE_KEY] > 0
        assert names[codec.code_verifier_key] == 0

    @pytest.mark.asyncio
    async def test_missing_code_verifier(self):
        result = await _provider(_unreachable).exchange_code("abc123", {})

        assert not result.ok
        assert "code verifier" in result.error

    @pytest.mark.asyncio
    async def test_rejected_code(self):
        codec = SessionCookieCodec(STORAGE_KEY)

        def handler(request):
            return httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid auth code"})

        result = await _provider(handler).exchange_code("abc123", {codec.code_verifier_key: "verifier-123"})

        assert not result.ok
        assert result.error == "Invalid auth code"
        assert result.cookies == []

    @pytest.mark.asyncio
    async def test_unreadable_session_body_raises(self):
        codec = SessionCookieCodec(STORAGE_KEY)
        provider = _provider(lambda request: httpx.Response(200, text="not json"))

        with pytest.raises(IdentityProviderError) as exc_info:
            await provider.exchange_code("abc123", {codec.code_verifier_key: "verifier-123"})

        assert exc_info.value.details == {"operation": "exchange_code", "upstream_status": 200}


class TestCreateIdentityProvider:
    def test_configured(self):
        provider = create_identity_provider()

        assert isinstance(provider, SupabaseIdentityProvider)
        assert provider.auth_url == "https://example.supabase.co/auth/v1"
        assert provider.codec.storage_key == "sb-example-auth-token"

    def test_not_configured(self, identity_settings):
        identity_settings.supabase_anon_key = None

        assert create_identity_provider() is None
