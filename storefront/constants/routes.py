"""
Routing Constants

Route keys, query parameters and header names shared by the session guard,
the locale routing stage and the auth callback.
"""

import re

# Route keys
LOGIN_ROUTE = "/auth/login"
AUTH_ERROR_ROUTE = "/auth/error"
DASHBOARD_ROUTE = "/dashboard"
PROTECTED_ROUTE = "/protected"
ADMIN_ROUTE = "/admin"

# Everything under the auth section stays reachable without a session
AUTH_PREFIX = "/auth"

# Query parameters
REDIRECT_TO_PARAM = "redirectTo"
NEXT_PARAM = "next"

# Headers carried between pipeline stages and into the downstream request.
# They are never sent back to the client.
INTERNAL_HEADER_PREFIX = "x-middleware-"
LOCALE_HEADER = "x-middleware-locale"
ROUTE_HEADER = "x-middleware-route"
REWRITE_HEADER = "x-middleware-rewrite"
USER_ID_HEADER = "x-middleware-user-id"

# Paths the interception pipeline never sees: framework and API routes,
# the auth callback, docs, health checks and anything that looks like a file.
EXCLUDED_PATH_PATTERN = re.compile(
    r"^/(?:api|trpc|_next|_vercel|static|docs|redoc|openapi\.json|health|auth/callback)(?:/|$)"
    r"|^(?:.*/)?[^/]*\.[^/]*$"
)
