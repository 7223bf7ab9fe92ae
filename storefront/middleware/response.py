"""
Stage responses for the interception pipeline

Each pipeline stage returns a ``StageResponse`` instead of a Starlette
response: it says whether the request continues, is rewritten to an
internal path, or is redirected, and carries the cookies and headers the
stage wants on the outgoing response.  ``InterceptMiddleware`` turns the
merged result into the real response.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from starlette.responses import RedirectResponse, Response

from storefront.constants.routes import INTERNAL_HEADER_PREFIX


@dataclass
class ResponseCookie:
    """A cookie to set on the outgoing response"""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = False
    samesite: Literal["lax", "strict", "none"] | None = "lax"

    @classmethod
    def expired(cls, name: str, path: str = "/") -> ResponseCookie:
        return cls(name=name, value="", max_age=0, path=path)

    def apply(self, response: Response) -> None:
        response.set_cookie(
            key=self.name,
            value=self.value,
            max_age=self.max_age,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )


class StageAction(str, Enum):
    NEXT = "next"
    REWRITE = "rewrite"
    REDIRECT = "redirect"


@dataclass
class StageResponse:
    action: StageAction = StageAction.NEXT
    rewrite_path: str | None = None
    status_code: int = 307
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, ResponseCookie] = field(default_factory=dict)
    # Attributes copied onto request.state for downstream handlers
    state: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def next(cls) -> StageResponse:
        return cls()

    @classmethod
    def rewrite(cls, path: str) -> StageResponse:
        return cls(action=StageAction.REWRITE, rewrite_path=path)

    @classmethod
    def redirect(cls, url: str, status_code: int = 307) -> StageResponse:
        return cls(action=StageAction.REDIRECT, status_code=status_code, headers={"location": url})

    @property
    def location(self) -> str | None:
        return self.headers.get("location")

    @property
    def is_redirect(self) -> bool:
        return self.location is not None

    def set_header(self, name: str, value: str) -> None:
        self.headers[name.lower()] = value

    def set_cookie(self, cookie: ResponseCookie) -> None:
        # Later writes of the same name replace earlier ones
        self.cookies[cookie.name] = cookie

    def set_cookies(self, cookies: list[ResponseCookie]) -> None:
        for cookie in cookies:
            self.set_cookie(cookie)

    def to_redirect_response(self) -> RedirectResponse:
        response = RedirectResponse(url=self.location, status_code=self.status_code)
        for name, value in self.headers.items():
            if name != "location" and not name.startswith(INTERNAL_HEADER_PREFIX):
                response.headers[name] = value
        for cookie in self.cookies.values():
            cookie.apply(response)
        return response
