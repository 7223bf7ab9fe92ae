"""
Pytest configuration and fixtures for Storefront Edge tests
"""

import os
import sys

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH120

from storefront.config import settings  # noqa: E402
from storefront.services.identity_service import ClaimsResult, ExchangeResult  # noqa: E402

SESSION_COOKIE = "sb-example-auth-token"


class FakeIdentityProvider:
    """In-memory identity provider that records every call it receives."""

    def __init__(self):
        self.claims = None
        self.user = None
        self.refresh_cookies = []
        self.exchange_result = ExchangeResult(session={"access_token": "token"})
        self.calls = []
        self.user_cookies = None
        self.exchanged_code = None
        self.error = None
        self.exchange_error = None

    async def refresh_claims(self, cookies):
        self.calls.append("refresh_claims")
        if self.error:
            raise self.error
        return ClaimsResult(claims=self.claims, cookies=list(self.refresh_cookies))

    async def get_user(self, cookies):
        self.calls.append("get_user")
        self.user_cookies = dict(cookies)
        return self.user

    async def exchange_code(self, code, cookies):
        self.calls.append("exchange_code")
        self.exchanged_code = code
        if self.exchange_error:
            raise self.exchange_error
        return self.exchange_result


@pytest.fixture(autouse=True)
def identity_settings(monkeypatch):
    """Run every test against a configured identity provider and default routing flags."""
    monkeypatch.setattr(settings, "supabase_url", "https://example.supabase.co")
    monkeypatch.setattr(settings, "supabase_anon_key", "anon-key")
    monkeypatch.setattr(settings, "session_cookie_name", None)
    monkeypatch.setattr(settings, "fail_closed_without_identity_provider", False)
    monkeypatch.setattr(settings, "locale_detection", False)
    monkeypatch.setattr(settings, "alternate_links", True)
    return settings


@pytest.fixture
def fake_provider():
    return FakeIdentityProvider()


@pytest.fixture
def client(fake_provider):
    from main import create_app

    return TestClient(create_app(identity_provider=fake_provider), raise_server_exceptions=False)


@pytest.fixture
def make_request():
    """Build a bare Starlette request for exercising pipeline stages directly."""

    def _make_request(path="/", query_string="", headers=None, cookies=None):
        raw_headers = [(b"host", b"example.com")]
        for name, value in (headers or {}).items():
            raw_headers.append((name.lower().encode("latin-1"), value.encode("latin-1")))
        if cookies:
            cookie_header = "; ".join(f"{name}={value}" for name, value in cookies.items())
            raw_headers.append((b"cookie", cookie_header.encode("latin-1")))
        scope = {
            "type": "http",
            "method": "GET",
            "scheme": "https",
            "server": ("example.com", 443),
            "root_path": "",
            "path": path,
            "raw_path": path.encode("latin-1"),
            "query_string": query_string.encode("latin-1"),
            "headers": raw_headers,
        }
        return Request(scope)

    return _make_request
