"""
Localized routing table

Route keys are the canonical (locale-independent) paths of the site.  Each
key maps either to one path shared by every locale or to a per-locale
spelling.  The table is validated when the module is imported and is never
mutated afterwards, so lookups need no locking.

Prefix policy ``as-needed`` serves the default locale without a path prefix
(``/auth/ingresar``) and every other locale under ``/<locale>``
(``/en/auth/login``).
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import NamedTuple
from urllib.parse import quote, unquote

from storefront.exceptions import RoutingConfigurationError, UnknownRouteError

PathnameEntry = str | Mapping[str, str]

_PARAM_SEGMENT = re.compile(r"^\[([A-Za-z_][A-Za-z0-9_]*)\]$")


class LocalePrefix(str, Enum):
    AS_NEEDED = "as-needed"
    ALWAYS = "always"


class NormalizedPath(NamedTuple):
    locale: str
    path: str
    had_explicit_prefix: bool


class RouteMatch(NamedTuple):
    route_key: str
    params: dict[str, str]


class _Template:
    """Compiled form of one localized path template."""

    __slots__ = ("path", "params", "pattern")

    def __init__(self, path: str):
        self.path = path
        self.params: list[str] = []
        parts = []
        for segment in path.strip("/").split("/"):
            param = _PARAM_SEGMENT.match(segment)
            if param:
                self.params.append(param.group(1))
                parts.append(f"(?P<{param.group(1)}>[^/]+)")
            elif segment:
                parts.append(re.escape(segment))
        self.pattern = re.compile("^/" + "/".join(parts) + "/?$") if parts else re.compile("^/$")

    @property
    def is_dynamic(self) -> bool:
        return bool(self.params)

    def fill(self, params: Mapping[str, str] | None) -> str:
        if not self.params:
            return self.path
        params = params or {}
        segments = []
        for segment in self.path.split("/"):
            param = _PARAM_SEGMENT.match(segment)
            if param:
                name = param.group(1)
                if name not in params:
                    raise ValueError(f"Missing value for route parameter '{name}' in '{self.path}'")
                segments.append(quote(str(params[name]), safe=""))
            else:
                segments.append(segment)
        return "/".join(segments)

    def match(self, path: str) -> dict[str, str] | None:
        found = self.pattern.match(path)
        if found is None:
            return None
        return {name: unquote(value) for name, value in found.groupdict().items()}


class Routing:
    """Immutable registry of supported locales and localized pathnames."""

    def __init__(
        self,
        locales: tuple[str, ...],
        default_locale: str,
        pathnames: Mapping[str, PathnameEntry],
        locale_prefix: LocalePrefix = LocalePrefix.AS_NEEDED,
    ):
        if not locales:
            raise RoutingConfigurationError("At least one locale must be supported")
        if default_locale not in locales:
            raise RoutingConfigurationError(f"Default locale '{default_locale}' is not a supported locale")

        self.locales = tuple(locales)
        self.default_locale = default_locale
        self.locale_prefix = LocalePrefix(locale_prefix)
        self.pathnames = MappingProxyType(self._expand(pathnames))

        self._compiled = MappingProxyType(
            {
                locale: MappingProxyType({key: _Template(paths[locale]) for key, paths in self.pathnames.items()})
                for locale in self.locales
            }
        )
        # Static templates are tried before dynamic ones so "/vehicles/sedan"
        # never resolves to "/vehicles/[slug]".
        self._match_order = MappingProxyType(
            {
                locale: tuple(sorted(templates.items(), key=lambda item: item[1].is_dynamic))
                for locale, templates in self._compiled.items()
            }
        )

    def _expand(self, pathnames: Mapping[str, PathnameEntry]) -> dict[str, Mapping[str, str]]:
        expanded: dict[str, Mapping[str, str]] = {}
        for route_key, entry in pathnames.items():
            if not route_key.startswith("/"):
                raise RoutingConfigurationError("Route keys must start with '/'", route_key=route_key)
            if isinstance(entry, str):
                per_locale = {locale: entry for locale in self.locales}
            else:
                unknown = set(entry) - set(self.locales)
                if unknown:
                    raise RoutingConfigurationError(
                        f"Unsupported locale(s) {sorted(unknown)} in route '{route_key}'", route_key=route_key
                    )
                missing = [locale for locale in self.locales if locale not in entry]
                if missing:
                    raise RoutingConfigurationError(
                        f"Route '{route_key}' has no path for locale(s) {missing}", route_key=route_key
                    )
                per_locale = {locale: entry[locale] for locale in self.locales}
            for locale, path in per_locale.items():
                if not path or not path.startswith("/"):
                    raise RoutingConfigurationError(
                        f"Route '{route_key}' has an invalid path for locale '{locale}': {path!r}",
                        route_key=route_key,
                    )
            expanded[route_key] = MappingProxyType(per_locale)
        return expanded

    # ── Registry ──────────────────────────────────────────────────────────

    def has_route(self, route_key: str) -> bool:
        return route_key in self.pathnames

    def is_locale(self, value: str | None) -> bool:
        return value in self.locales

    def lookup(self, route_key: str, locale: str) -> str:
        """Return the unprefixed path template of ``route_key`` for ``locale``."""
        try:
            paths = self.pathnames[route_key]
        except KeyError:
            raise UnknownRouteError(route_key) from None
        if locale not in paths:
            raise ValueError(f"Unsupported locale: {locale}")
        return paths[locale]

    def spellings(self, route_key: str) -> frozenset[str]:
        """Every distinct unprefixed spelling of a route across locales."""
        return frozenset(self.pathnames[route_key].values()) if route_key in self.pathnames else frozenset()

    # ── Path localizer ────────────────────────────────────────────────────

    def with_prefix(self, path: str, locale: str) -> str:
        """Apply the prefix policy to an already localized path."""
        if self.locale_prefix is LocalePrefix.AS_NEEDED and locale == self.default_locale:
            return path
        return f"/{locale}" if path == "/" else f"/{locale}{path}"

    def localize(self, route_key: str, locale: str, params: Mapping[str, str] | None = None) -> str:
        """Return the concrete URL path of ``route_key`` in ``locale``."""
        self.lookup(route_key, locale)
        return self.with_prefix(self._compiled[locale][route_key].fill(params), locale)

    def normalize(self, raw_path: str) -> NormalizedPath:
        """Strip a leading locale segment from ``raw_path``.

        ``/en/dashboard`` → ``("en", "/dashboard", True)``
        ``/dashboard``    → (default locale, ``"/dashboard"``, False)
        """
        if not raw_path.startswith("/"):
            raw_path = "/" + raw_path
        _, first, rest = (raw_path.split("/", 2) + [""])[:3]
        if first in self.locales:
            return NormalizedPath(first, "/" + rest if rest else "/", True)
        return NormalizedPath(self.default_locale, raw_path, False)

    def match(self, path: str, locale: str) -> RouteMatch | None:
        """Reverse lookup of an unprefixed, localized path."""
        for route_key, template in self._match_order.get(locale, ()):
            params = template.match(path)
            if params is not None:
                return RouteMatch(route_key, params)
        return None

    def switch_locale(self, raw_path: str, target_locale: str) -> str:
        """Translate a concrete path into its equivalent in ``target_locale``."""
        if target_locale not in self.locales:
            raise ValueError(f"Unsupported locale: {target_locale}")
        normalized = self.normalize(raw_path)
        found = self.match(normalized.path, normalized.locale)
        if found is None:
            return self.with_prefix(normalized.path, target_locale)
        return self.localize(found.route_key, target_locale, found.params)

    def internal_path(self, route_key: str, locale: str, params: Mapping[str, str] | None = None) -> str:
        """Path the application serves a route under: ``/<locale><route key>``."""
        self.lookup(route_key, locale)
        path = _Template(route_key).fill(params)
        return f"/{locale}" if path == "/" else f"/{locale}{path}"

    def alternates(self, route_key: str, params: Mapping[str, str] | None = None) -> dict[str, str]:
        return {locale: self.localize(route_key, locale, params) for locale in self.locales}


# ── Site table ────────────────────────────────────────────────────────────────

LOCALES: tuple[str, ...] = ("es", "en")
DEFAULT_LOCALE = "es"

PATHNAMES: dict[str, PathnameEntry] = {
    "/": "/",
    "/protected": {"en": "/protected", "es": "/protegido"},
    "/protected/profile": {"en": "/protected/profile", "es": "/protegido/perfil"},
    "/protected/storage-demo": {"en": "/protected/storage-demo", "es": "/protegido/almacenamiento"},
    "/auth/login": {"en": "/auth/login", "es": "/auth/ingresar"},
    "/auth/sign-up": {"en": "/auth/sign-up", "es": "/auth/registrar"},
    "/auth/forgot-password": {"en": "/auth/forgot-password", "es": "/auth/recuperar"},
    "/auth/update-password": {"en": "/auth/update-password", "es": "/auth/actualizar-clave"},
    "/auth/sign-up-success": "/auth/sign-up-success",
    "/auth/error": "/auth/error",
    "/dashboard": "/dashboard",
    "/admin": "/admin",
    "/test": {"en": "/test", "es": "/prueba"},
    "/precios": {"en": "/prices", "es": "/precios"},
    "/vehicles": {"en": "/vehicles", "es": "/vehiculos"},
    "/vehicles/[slug]": {"en": "/vehicles/[slug]", "es": "/vehiculos/[slug]"},
    "/cars": "/cars",
    "/vehicles/sedan": "/vehicles/sedan",
    "/vehicles/suv": "/vehicles/suv",
    "/vehicles/city": "/vehicles/city",
    "/vehicles/pickups": "/vehicles/pickups",
    "/vehicles/newest": "/vehicles/newest",
    "/vehicles/best-value": "/vehicles/best-value",
    "/vehicles/top-rated": "/vehicles/top-rated",
    "/used-cars/waitlist": "/used-cars/waitlist",
    "/services": "/services",
    "/services/financing": "/services/financing",
    "/services/electricians": "/services/electricians",
    "/services/workshops": "/services/workshops",
    "/services/detailing": "/services/detailing",
    "/services/insurance": "/services/insurance",
    "/shop": "/shop",
    "/shop/portable-chargers": "/shop/portable-chargers",
    "/shop/wall-chargers": "/shop/wall-chargers",
    "/shop/accessories": "/shop/accessories",
    "/shop/tires": "/shop/tires",
}

routing = Routing(
    locales=LOCALES,
    default_locale=DEFAULT_LOCALE,
    pathnames=PATHNAMES,
    locale_prefix=LocalePrefix.AS_NEEDED,
)
