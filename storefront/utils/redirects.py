"""
Redirect helpers

Builds absolute redirect URLs on the request's own origin and validates
caller-supplied post-login destinations.
"""

from urllib.parse import quote, urlencode, urlsplit, urlunsplit

from fastapi import Request

from storefront.i18n.routing import routing


def request_origin(request: Request) -> str:
    return f"{request.url.scheme}://{request.url.netloc}"


def absolute_url(request: Request, path: str, query: dict[str, str] | None = None) -> str:
    url = request_origin(request) + path
    if query:
        url += "?" + urlencode(query, quote_via=quote)
    return url


def original_uri(request: Request) -> str:
    """The path and query string exactly as the client sent them."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def is_safe_next_path(value: str | None) -> bool:
    """Accept only same-origin absolute paths.

    Rejects absolute URLs, scheme-relative ``//host`` values and the
    backslash variants browsers treat the same way.
    """
    if not value or not value.startswith("/") or value.startswith("//"):
        return False
    if "\\" in value:
        return False
    return not any(ord(char) < 0x20 or ord(char) == 0x7F for char in value)


def localize_next_path(value: str | None, locale: str) -> str | None:
    """Return the post-login path for a caller-supplied ``next`` value.

    Known route keys are re-localized for ``locale``; any other safe path is
    kept as given.  Unsafe values yield None.
    """
    if not is_safe_next_path(value):
        return None
    parts = urlsplit(value)
    # Dynamic route keys ("/vehicles/[slug]") carry no values to fill in
    if not routing.has_route(parts.path) or "[" in parts.path:
        return value
    return urlunsplit(("", "", routing.localize(parts.path, locale), parts.query, parts.fragment))
