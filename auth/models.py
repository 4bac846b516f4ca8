"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these dataclasses own the domain shape.

Two shapes exist on purpose:
  User     -- the full persisted record, including password_hash and
              mfa_secret. Only the Credential Store and the login/MFA flows
              ever hold one.
  Identity -- what the Authorization Gate attaches to a request. It has no
              field that could carry a secret, so nothing downstream of the
              gate can leak one by accident.

Layer rule: no imports from api/, audit/, or inventory/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "ADMIN"  # full control
    MANAGER = "MANAGER"  # edit inventory entities
    VIEWER = "VIEWER"  # read-only


@dataclass
class User:
    """A persisted account.

    email is stored lower-cased; the store normalizes on every write and lookup.

    MFA invariant: mfa_enabled is only ever True while mfa_secret is present.
    A secret with mfa_enabled False is an unconfirmed enrollment (setup-mfa
    ran, verify-setup-mfa has not succeeded yet) and is not enforced at login.
    """

    email: str
    name: str
    role: str = Role.VIEWER.value
    id: int | None = None
    password_hash: str | None = None
    mfa_enabled: bool = False
    mfa_secret: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    last_login: str | None = None


@dataclass(frozen=True)
class Identity:
    """The resolved, secret-free view of a user attached to request context."""

    id: int
    name: str
    email: str
    role: str
    mfa_enabled: bool = False

    @classmethod
    def from_user(cls, user: User) -> "Identity":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            mfa_enabled=user.mfa_enabled,
        )
