"""
auth/tokens.py -- Password hashing, session tokens, and the session cookie.

Security design decisions:
  Passwords: bcrypt, used directly. Its cost factor makes brute-force
       expensive and checkpw() compares in constant time. A malformed stored
       hash makes verify_password() return False rather than raise. The
       _DUMMY_HASH constant enables timing equalization in authenticate_user()
       so response time does not reveal whether an email is registered.

  Tokens: python-jose with HS256. A token carries the subject (user id), a
       "kind" claim and an expiry. Two kinds exist:
         "full"    -- a session; accepted by the Authorization Gate.
         "pending" -- issued after a correct password when MFA is enabled;
                      accepted only by POST /auth/verify-mfa.
       Every verifier states which kind it expects, so a pending token can
       never be replayed as a session and vice versa. Tokens are stateless:
       there is no revocation list.

  Cookie: the full token travels in an httpOnly, SameSite=Strict cookie
       named "token". The secure flag is set in production only.

Layer rule: no imports from api/, audit/, or inventory/. Import from core/
is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from core.config import get_settings
from core.errors import ValidationFailed

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("inventory.auth")

_settings = get_settings()

_ALGORITHM = "HS256"

TOKEN_KIND_FULL = "full"
TOKEN_KIND_PENDING = "pending"

SESSION_COOKIE = "token"


# ---------------------------------------------------------------------------
# Token errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for every reason a session token is rejected."""


class TokenExpired(TokenError):
    pass


class TokenBadSignature(TokenError):
    pass


class TokenMalformed(TokenError):
    pass


class TokenKindMismatch(TokenError):
    pass


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt refuses input longer than 72 bytes. The request models reject such
    passwords first; this check covers the CLI and any other caller.
    """
    encoded = plain.encode("utf-8")
    if len(encoded) > MAX_PASSWORD_BYTES:
        raise ValidationFailed(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    An over-long password or a malformed stored hash is a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        logger.warning("bcrypt rejected the password check; treating as mismatch")
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("inventory_timing_dummy")


def authenticate_user(store: UserStore, email: str, password: str) -> User | None:
    """Verify an email/password pair with timing equalization.

    bcrypt runs whether or not the email exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure. Callers must answer both
    failures with the same message.
    """
    user = store.get_by_email(email)
    if user is None or not user.password_hash:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def create_session_token(user_id: int, kind: str = TOKEN_KIND_FULL, expire_seconds: int | None = None) -> str:
    """Encode a signed token for user_id.

    Args:
        user_id:        Subject of the token.
        kind:           TOKEN_KIND_FULL or TOKEN_KIND_PENDING.
        expire_seconds: Lifetime override. None uses the configured lifetime
                        for the kind. Tests pass a negative value to mint an
                        already-expired token.
    """
    if kind not in (TOKEN_KIND_FULL, TOKEN_KIND_PENDING):
        raise ValueError(f"Unknown token kind: {kind!r}")
    if expire_seconds is None:
        expire_seconds = (
            _settings.token_expire_seconds if kind == TOKEN_KIND_FULL else _settings.mfa_token_expire_seconds
        )
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "kind": kind,
        "iat": now,
        "exp": now + timedelta(seconds=expire_seconds),
    }
    return jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)


def verify_session_token(token: str, kind: str = TOKEN_KIND_FULL) -> int:
    """Verify a token and return its subject (user id).

    Raises:
        TokenMalformed     -- not a decodable token, or claims missing/invalid.
        TokenBadSignature  -- structurally valid but not signed with our key.
        TokenExpired       -- genuine token past its expiry.
        TokenKindMismatch  -- genuine token of the other kind.

    The structure is inspected before the signature so a truncated or garbage
    value is reported as malformed rather than as a forgery.
    """
    if not token:
        raise TokenMalformed("empty token")
    try:
        jwt.get_unverified_header(token)
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise TokenMalformed(str(exc)) from exc

    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise TokenExpired("token expired") from exc
    except JWTError as exc:
        raise TokenBadSignature(str(exc)) from exc

    if payload.get("kind") != kind:
        raise TokenKindMismatch(f"expected {kind} token")
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError) as exc:
        raise TokenMalformed("missing or invalid subject") from exc


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str) -> None:
    """Write the full session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only in production, where the API is served over HTTPS.
    max_age: matches the token expiry so both expire together.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
        max_age=_settings.token_expire_seconds,
    )


def clear_session_cookie(response) -> None:
    """Overwrite the session cookie with an empty, already-expired value."""
    response.set_cookie(
        SESSION_COOKIE,
        value="",
        httponly=True,
        samesite="strict",
        secure=_settings.secure_cookies,
        expires=datetime(1970, 1, 1, tzinfo=timezone.utc),
    )
