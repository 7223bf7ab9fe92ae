"""
Session guard tests

Exercises update_session directly with a fake identity provider: refresh on
every request, authoritative user check on protected paths only, localized
login redirects and the fail-open/fail-closed behaviour when the provider is
not configured.
"""

from urllib.parse import parse_qs, urlsplit

import pytest
from conftest import SESSION_COOKIE

from storefront.constants.routes import USER_ID_HEADER
from storefront.exceptions import IdentityProviderError
from storefront.middleware.response import ResponseCookie, StageAction
from storefront.middleware.session_guard import effective_cookies, update_session


def _redirect_parts(stage):
    parts = urlsplit(stage.location)
    return parts.path, parse_qs(parts.query)


class TestEffectiveCookies:
    def test_rotated_cookie_replaces_request_value(self):
        cookies = effective_cookies({SESSION_COOKIE: "old", "other": "1"}, [ResponseCookie(SESSION_COOKIE, "new")])
        assert cookies == {SESSION_COOKIE: "new", "other": "1"}

    def test_expired_cookie_is_removed(self):
        cookies = effective_cookies({SESSION_COOKIE: "old"}, [ResponseCookie.expired(SESSION_COOKIE)])
        assert cookies == {}

    def test_no_rotation(self):
        assert effective_cookies({"a": "1"}, []) == {"a": "1"}


class TestPublicPaths:
    @pytest.mark.asyncio
    async def test_public_path_passes_without_user_check(self, make_request, fake_provider):
        result = await update_session(make_request("/shop"), fake_provider)

        assert result.action is StageAction.NEXT
        assert not result.is_redirect
        assert fake_provider.calls == ["refresh_claims"]

    @pytest.mark.asyncio
    async def test_public_path_keeps_rotated_cookies(self, make_request, fake_provider):
        fake_provider.refresh_cookies = [ResponseCookie(SESSION_COOKIE, "rotated")]

        result = await update_session(make_request("/"), fake_provider)

        assert result.cookies[SESSION_COOKIE].value == "rotated"

    @pytest.mark.asyncio
    async def test_auth_pages_are_public(self, make_request, fake_provider):
        result = await update_session(make_request("/auth/ingresar"), fake_provider)

        assert not result.is_redirect
        assert fake_provider.calls == ["refresh_claims"]


class TestProtectedPaths:
    @pytest.mark.asyncio
    async def test_authenticated_user_passes(self, make_request, fake_provider):
        fake_provider.user = {"id": "user-1", "email": "driver@example.com"}

        result = await update_session(make_request("/dashboard"), fake_provider)

        assert result.action is StageAction.NEXT
        assert result.headers[USER_ID_HEADER] == "user-1"
        assert fake_provider.calls == ["refresh_claims", "get_user"]

    @pytest.mark.asyncio
    async def test_user_check_sees_rotated_cookies(self, make_request, fake_provider):
        fake_provider.user = {"id": "user-1"}
        fake_provider.refresh_cookies = [ResponseCookie(SESSION_COOKIE, "rotated")]

        result = await update_session(
            make_request("/protegido", cookies={SESSION_COOKIE: "stale"}),
            fake_provider,
        )

        assert fake_provider.user_cookies[SESSION_COOKIE] == "rotated"
        assert result.cookies[SESSION_COOKIE].value == "rotated"

    @pytest.mark.asyncio
    async def test_anonymous_user_is_redirected_to_login(self, make_request, fake_provider):
        result = await update_session(make_request("/dashboard"), fake_provider)

        assert result.action is StageAction.REDIRECT
        assert result.status_code == 307
        path, query = _redirect_parts(result)
        assert result.location.startswith("https://example.com/")
        assert path == "/auth/ingresar"
        assert query == {"redirectTo": ["/dashboard"]}

    @pytest.mark.asyncio
    async def test_redirect_preserves_original_path_and_query(self, make_request, fake_provider):
        request = make_request("/en/protected/profile", query_string="tab=orders&page=2")

        result = await update_session(request, fake_provider)

        path, query = _redirect_parts(result)
        assert path == "/en/auth/login"
        assert query["redirectTo"] == ["/en/protected/profile?tab=orders&page=2"]

    @pytest.mark.asyncio
    async def test_unprefixed_path_uses_accept_language(self, make_request, fake_provider):
        request = make_request("/dashboard", headers={"Accept-Language": "en-US,en;q=0.9"})

        result = await update_session(request, fake_provider)

        path, _ = _redirect_parts(result)
        assert path == "/en/auth/login"

    @pytest.mark.asyncio
    async def test_unprefixed_path_uses_locale_cookie(self, make_request, fake_provider):
        request = make_request("/admin", headers={"Accept-Language": "es"}, cookies={"NEXT_LOCALE": "en"})

        result = await update_session(request, fake_provider)

        path, _ = _redirect_parts(result)
        assert path == "/en/auth/login"

    @pytest.mark.asyncio
    async def test_prefix_beats_accept_language(self, make_request, fake_provider):
        request = make_request("/en/dashboard", headers={"Accept-Language": "es"})

        result = await update_session(request, fake_provider)

        path, _ = _redirect_parts(result)
        assert path == "/en/auth/login"

    @pytest.mark.asyncio
    async def test_redirect_keeps_rotated_cookies(self, make_request, fake_provider):
        fake_provider.refresh_cookies = [ResponseCookie.expired(SESSION_COOKIE)]

        result = await update_session(make_request("/dashboard"), fake_provider)

        assert result.is_redirect
        assert result.cookies[SESSION_COOKIE].max_age == 0

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, make_request, fake_provider):
        fake_provider.error = IdentityProviderError(operation="refresh_session")

        with pytest.raises(IdentityProviderError):
            await update_session(make_request("/dashboard"), fake_provider)


class TestProviderNotConfigured:
    @pytest.mark.asyncio
    async def test_fails_open_without_provider(self, make_request):
        result = await update_session(make_request("/dashboard"), None)

        assert not result.is_redirect
        assert result.cookies == {}

    @pytest.mark.asyncio
    async def test_fails_open_when_settings_incomplete(self, make_request, fake_provider, identity_settings):
        identity_settings.supabase_anon_key = None

        result = await update_session(make_request("/dashboard"), fake_provider)

        assert not result.is_redirect
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_fail_closed_denies_protected_paths(self, make_request, identity_settings):
        identity_settings.fail_closed_without_identity_provider = True

        result = await update_session(make_request("/en/admin"), None)

        path, query = _redirect_parts(result)
        assert path == "/en/auth/login"
        assert query == {"redirectTo": ["/en/admin"]}

    @pytest.mark.asyncio
    async def test_fail_closed_still_serves_public_paths(self, make_request, identity_settings):
        identity_settings.fail_closed_without_identity_provider = True

        result = await update_session(make_request("/shop"), None)

        assert not result.is_redirect
