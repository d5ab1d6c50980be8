"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Every protected route depends on get_principal(), directly or through
require_roles(). The request must carry exactly:

    Authorization: Bearer <token>

Outcomes, checked in this order:
  - header absent                           -> 401 "Unauthorized Access"
  - header present (even empty) but any other shape -> 400 "Bad Request"
  - bad signature, malformed, or expired    -> 401 "Invalid token"
  - valid but revoked (logged out)          -> 401
  - otherwise the Principal is stored on request.state and returned.

get_principal() does not decide per-route role policy. require_roles()
wraps it and raises 403 when the principal's role is not allowed; each
route picks its own set. Organization scoping is applied by the stores,
which filter every query by principal.organization_id.

Layer rule: no imports from api/ or catalog/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from fastapi import Depends, Request

from auth.models import Principal
from auth.tokens import TokenService
from core.errors import BadRequestError, ForbiddenError, UnauthenticatedError

_BEARER_RE = re.compile(r"^Bearer ([^\s]+)$")


def bearer_token(request: Request) -> str:
    """Extract the token from the Authorization header or raise 400/401."""
    header = request.headers.get("Authorization")
    if header is None:
        raise UnauthenticatedError("Unauthorized Access")
    match = _BEARER_RE.match(header)
    if match is None:
        raise BadRequestError("Bad Request")
    return match.group(1)


def get_principal(request: Request) -> Principal:
    """Authenticate the request and attach the Principal to request.state.

    Use as a FastAPI dependency:
        @router.get("/artists")
        def route(principal: Principal = Depends(get_principal)): ...
    """
    token = bearer_token(request)
    tokens: TokenService = request.app.state.tokens
    principal = tokens.validate(token)
    if principal is None:
        raise UnauthenticatedError("Invalid token")
    if not tokens.is_live(principal):
        raise UnauthenticatedError("Session has expired or been revoked.")
    request.state.principal = principal
    request.state.token = token
    return principal


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Build a dependency that admits only the given roles.

    Raises 401 if unauthenticated (via get_principal), 403 if the role is
    not in `roles`.

    Use as a FastAPI dependency:
        @router.post("/artists/add-artist")
        def route(principal: Principal = Depends(require_roles("Admin"))): ...
    """
    allowed = frozenset(roles)

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise ForbiddenError("You do not have permission to perform this action.")
        return principal

    return dependency
