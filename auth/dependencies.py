"""
auth/dependencies.py -- FastAPI Depends() helpers: the Authorization Gate.

Every protected route runs the same per-request state machine:

  Unauthenticated -> TokenPresent      token read from the "token" cookie,
                                       falling back to Authorization: Bearer
  TokenPresent    -> TokenValid        signature, expiry and kind == "full"
  TokenValid      -> IdentityResolved  subject still exists in the UserStore
  IdentityResolved-> RoleChecked       only for routes with a role allow-list
  RoleChecked     -> Admitted          Identity attached to request.state

The first three transitions fail with Unauthorized (401), the role check
with Forbidden (403). Because these run as dependencies, FastAPI resolves
them before the handler body -- and before any audit before-snapshot.

try_get_identity() is the soft variant (returns None on failure).
get_current_identity() raises 401. require_roles(...) builds a dependency that
additionally raises 403 when the identity's role is not in the allow-list.

Layer rule: no imports from api/, audit/, or inventory/.
  This module may import from fastapi because it is part of the FastAPI
  dependency injection system.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.models import Identity, Role
from auth.tokens import SESSION_COOKIE, TOKEN_KIND_FULL, TokenError, verify_session_token
from core.errors import Forbidden, Unauthorized

logger = logging.getLogger("inventory.auth")


def _extract_token(request: Request) -> str | None:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:].strip()
    return token or None


def resolve_identity(request: Request) -> Identity:
    """Walk the gate up to IdentityResolved and attach the Identity to the request.

    Raises Unauthorized on any failure. The message distinguishes "no token"
    from "bad token" only; it never reveals whether a user id exists.
    """
    token = _extract_token(request)
    if token is None:
        raise Unauthorized("Not authorized, no token")

    try:
        user_id = verify_session_token(token, kind=TOKEN_KIND_FULL)
    except TokenError as exc:
        logger.info("Rejected session token on %s: %s", request.url.path, type(exc).__name__)
        raise Unauthorized("Not authorized, token failed") from exc

    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        logger.info("Session token for missing user id=%s on %s", user_id, request.url.path)
        raise Unauthorized("Not authorized, token failed")

    identity = Identity.from_user(user)
    request.state.identity = identity
    return identity


def try_get_identity(request: Request) -> Identity | None:
    """Return the Identity if the request carries a valid session, else None. Never raises."""
    try:
        return resolve_identity(request)
    except Unauthorized:
        return None


def get_current_identity(request: Request) -> Identity:
    """Require authentication; any role is admitted.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(get_current_identity)): ...
    """
    return resolve_identity(request)


def require_roles(*roles: Role | str) -> Callable[[Request], Identity]:
    """Build a dependency that admits only identities whose role is in `roles`.

    Use as a FastAPI dependency:
        @router.post("/products", dependencies=[Depends(require_roles(Role.ADMIN, Role.MANAGER))])
    """
    allowed = frozenset(r.value if isinstance(r, Role) else str(r) for r in roles)
    if not allowed:
        raise ValueError("require_roles() needs at least one role")

    def _role_gate(request: Request) -> Identity:
        identity = resolve_identity(request)
        if identity.role not in allowed:
            logger.info(
                "Forbidden: user id=%s role=%s on %s %s",
                identity.id,
                identity.role,
                request.method,
                request.url.path,
            )
            raise Forbidden(f"User role {identity.role} is not authorized to access this route")
        return identity

    return _role_gate
