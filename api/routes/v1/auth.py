"""
api/routes/v1/auth.py -- Login, MFA and session endpoints.

Routes:
  POST /api/auth/login              -- email + password; session cookie or MFA challenge
  POST /api/auth/verify-mfa         -- pending token + TOTP code; session cookie
  POST /api/auth/setup-mfa          -- start enrollment (requires auth)
  POST /api/auth/verify-setup-mfa   -- confirm enrollment with a code (requires auth)
  POST /api/auth/logout             -- clear the session cookie
  GET  /api/auth/me                 -- current identity (requires auth)
  POST /api/auth/register           -- create a user (ADMIN only, audited)

Login protocol:
  AwaitingCredentials -> CredentialsVerified -> SessionGranted
                                             -> MfaRequired -> SessionGranted

  MFA disabled: a "full" token is set as the session cookie and the identity
  is returned. MFA enabled: a short-lived "pending" token is returned in the
  body as tempToken and no cookie is set. verify-mfa only accepts pending
  tokens; the Authorization Gate only accepts full ones.

Security:
  authenticate_user() runs bcrypt for unknown emails too. Wrong email and
  wrong password get the same 401 "Invalid credentials".
  login and verify-mfa responses carry Cache-Control: no-store.
  A failed MFA code does not issue a new pending token; the client resubmits
  the same one until it expires.

Audit: every full session grant writes a LOGIN entry; verify-mfa also writes
MFA_VERIFY, verify-setup-mfa writes MFA_SETUP, and logout writes LOGOUT when
the request still carries a valid session.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    IdentityResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    MfaSetupResponse,
    MfaSetupVerifyRequest,
    MfaVerifyRequest,
    UserCreate,
    UserResponse,
)
from api.routes.v1.users import create_account
from audit.models import AuditAction, AuditResource
from audit.recorder import audited, record_event
from auth.dependencies import get_current_identity, require_roles, try_get_identity
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import (
    TOKEN_KIND_FULL,
    TOKEN_KIND_PENDING,
    TokenError,
    authenticate_user,
    clear_session_cookie,
    create_session_token,
    set_session_cookie,
    verify_session_token,
)
from auth.totp import generate_secret, provisioning_qr_data_url, verify_code
from core.config import get_settings
from core.errors import Conflict, NotFound, Unauthorized, ValidationFailed

logger = logging.getLogger("inventory.auth")

router = APIRouter(prefix="/auth")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _identity_response(user: User) -> IdentityResponse:
    return IdentityResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        mfa_enabled=user.mfa_enabled,
    )


def _no_store(payload: LoginResponse) -> JSONResponse:
    resp = JSONResponse(content=payload.model_dump(mode="json", by_alias=True, exclude_none=True))
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _grant_session(request: Request, user: User) -> JSONResponse:
    """SessionGranted: issue a full token, set the cookie, stamp last_login, audit LOGIN."""
    user_store: UserStore = request.app.state.user_store
    token = create_session_token(user.id, kind=TOKEN_KIND_FULL)
    user_store.update_last_login(user.id)
    record_event(
        request,
        actor_id=user.id,
        action=AuditAction.LOGIN,
        resource=AuditResource.AUTH,
        resource_id=user.id,
        description=f"User {user.email} logged in",
    )
    resp = _no_store(LoginResponse(mfa_required=False, user=_identity_response(user)))
    set_session_cookie(resp, token)
    return resp


def _current_user(request: Request, identity: Identity) -> User:
    user = request.app.state.user_store.get_by_id(identity.id)
    if user is None:
        raise NotFound("User not found")
    return user


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify credentials; grant a session or answer with an MFA challenge."""
    user = authenticate_user(request.app.state.user_store, body.email, body.password)
    if user is None:
        logger.info("Failed login from %s", request.client.host if request.client else "unknown")
        raise Unauthorized("Invalid credentials")

    if user.mfa_enabled:
        temp_token = create_session_token(user.id, kind=TOKEN_KIND_PENDING)
        return _no_store(LoginResponse(mfa_required=True, temp_token=temp_token))

    return _grant_session(request, user)


@router.post("/verify-mfa", response_model=LoginResponse)
def verify_mfa(request: Request, body: MfaVerifyRequest) -> JSONResponse:
    """Exchange a pending token and a valid TOTP code for a full session."""
    try:
        user_id = verify_session_token(body.temp_token, kind=TOKEN_KIND_PENDING)
    except TokenError as exc:
        logger.info("Rejected MFA token: %s", type(exc).__name__)
        raise Unauthorized("Invalid or expired MFA token") from exc

    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        raise Unauthorized("Invalid or expired MFA token")
    if not user.mfa_enabled or not user.mfa_secret:
        raise ValidationFailed("MFA not enabled for this user")

    if not verify_code(user.mfa_secret, body.mfa_code, window=get_settings().mfa_valid_window):
        logger.info("Invalid MFA code for user id=%s", user.id)
        raise Unauthorized("Invalid MFA code")

    record_event(
        request,
        actor_id=user.id,
        action=AuditAction.MFA_VERIFY,
        resource=AuditResource.AUTH,
        resource_id=user.id,
        description=f"User {user.email} passed MFA verification",
    )
    return _grant_session(request, user)


@router.post("/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Clear the session cookie. Works with or without a valid session."""
    identity = try_get_identity(request)
    if identity is not None:
        record_event(
            request,
            actor_id=identity.id,
            action=AuditAction.LOGOUT,
            resource=AuditResource.AUTH,
            resource_id=identity.id,
            description=f"User {identity.email} logged out",
        )
    resp = JSONResponse(content=MessageResponse(message="Logged out successfully").model_dump(by_alias=True))
    clear_session_cookie(resp)
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/me", response_model=IdentityResponse)
def me(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    return IdentityResponse(
        id=identity.id,
        name=identity.name,
        email=identity.email,
        role=identity.role,
        mfa_enabled=identity.mfa_enabled,
    )


@router.post("/setup-mfa", response_model=MfaSetupResponse)
def setup_mfa(request: Request, identity: Identity = Depends(get_current_identity)) -> MfaSetupResponse:
    """Generate and store an unconfirmed secret; return it with its QR code.

    MFA is not enforced at login until verify-setup-mfa succeeds. Calling
    this again before then replaces the pending secret.
    """
    user = _current_user(request, identity)
    if user.mfa_enabled:
        raise Conflict("MFA is already enabled for this user")

    settings = get_settings()
    secret, uri = generate_secret(user.email, settings.mfa_issuer)
    request.app.state.user_store.set_mfa_secret(user.id, secret)
    return MfaSetupResponse(
        qr_code=provisioning_qr_data_url(uri),
        provisioning_uri=uri,
        secret=secret,
    )


@router.post("/verify-setup-mfa", response_model=MessageResponse)
def verify_setup_mfa(
    request: Request,
    body: MfaSetupVerifyRequest,
    identity: Identity = Depends(get_current_identity),
) -> MessageResponse:
    """Confirm enrollment: a code matching the stored secret turns MFA on."""
    user = _current_user(request, identity)
    if user.mfa_enabled:
        raise Conflict("MFA is already enabled for this user")
    if not user.mfa_secret:
        raise ValidationFailed("MFA setup has not been started")
    if not verify_code(user.mfa_secret, body.mfa_code, window=get_settings().mfa_valid_window):
        raise ValidationFailed("Invalid MFA code")

    request.app.state.user_store.enable_mfa(user.id)
    record_event(
        request,
        actor_id=user.id,
        action=AuditAction.MFA_SETUP,
        resource=AuditResource.AUTH,
        resource_id=user.id,
        description=f"User {user.email} enabled MFA",
    )
    return MessageResponse(message="MFA enabled successfully")


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(require_roles(Role.ADMIN))],
)
@audited(AuditAction.CREATE, AuditResource.USER)
def register(request: Request, body: UserCreate) -> UserResponse:
    """Create a user account. Same behavior as POST /api/users."""
    return create_account(request.app.state.user_store, body)
