"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts (Credential Store).

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Route and dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  password_hash and mfa_secret live only in this table and in the User
  dataclass. Anything that leaves the process goes through auth.models.Identity
  or an api/ response model, neither of which has those fields.

  Emails are case-insensitive: _normalize_email() lower-cases on every write
  and every lookup, and the UNIQUE index sits on the normalized value.

MFA invariant (enforced here, not by callers):
  set_mfa_secret() always writes mfa_enabled = 0 alongside the new secret.
  enable_mfa() only flips the flag on rows whose secret is NOT NULL.

Layer rule: no imports from api/, audit/, or inventory/.
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Role, User
from core.database import make_engine, now_iso
from core.errors import Conflict

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),  # lower-cased
    Column("name", String(100), nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.VIEWER.value),
    Column("password_hash", Text),
    Column("mfa_enabled", Integer, nullable=False, server_default="0"),
    Column("mfa_secret", Text),  # base32; set by setup-mfa, confirmed by verify-setup-mfa
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
    Column("last_login", String(32)),
)

# Columns update_user() accepts. mfa_* go through the dedicated methods so the
# MFA invariant cannot be bypassed with a generic update.
_UPDATABLE = {"email", "name", "role", "password_hash"}


def _normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///inventory.db")
        uid = store.create_user(User(email="a@b.io", name="A", role="ADMIN", password_hash=hash_password("x")))
        user = store.get_by_email("A@B.io")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_users)).scalar()
        return (result or 0) > 0

    def count_admins(self) -> int:
        """Return the number of ADMIN accounts. Used by the last-admin guard."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.role == Role.ADMIN.value)
            ).scalar()
        return result or 0

    def get_by_email(self, email: str) -> User | None:
        """Case-insensitive lookup. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == _normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self) -> list[User]:
        """Return all users ordered by name. Admin-only operation."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.name, _users.c.id)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its id.

        Raises Conflict if the (normalized) email is already registered.
        The UNIQUE index is the source of truth, so two concurrent requests
        for the same email cannot both succeed.
        """
        now = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=_normalize_email(user.email),
                        name=user.name,
                        role=user.role,
                        password_hash=user.password_hash,
                        mfa_enabled=0,
                        mfa_secret=None,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("User already exists") from exc
        return result.inserted_primary_key[0]

    def update_user(self, user_id: int, **fields) -> bool:
        """Update mutable fields (email, name, role, password_hash).

        Returns True if a row was updated, False if user_id was not found.
        Raises Conflict if the new email belongs to another account.
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Fields not updatable via update_user: {sorted(unknown)!r}")
        if "email" in fields:
            fields["email"] = _normalize_email(fields["email"])
        fields["updated_at"] = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("User already exists") from exc
        return result.rowcount > 0

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user. Audit entries keep the dangling actor id."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def update_last_login(self, user_id: int) -> None:
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == user_id).values(last_login=now_iso()))
            conn.commit()

    # ------------------------------------------------------------------
    # MFA enrollment
    # ------------------------------------------------------------------

    def set_mfa_secret(self, user_id: int, secret: str) -> bool:
        """Store a new, unconfirmed MFA secret. MFA stays disabled until enable_mfa()."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(mfa_secret=secret, mfa_enabled=0, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def enable_mfa(self, user_id: int) -> bool:
        """Confirm enrollment. Only succeeds when a secret is already stored."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.mfa_secret.is_not(None)))
                .values(mfa_enabled=1, updated_at=now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        role=row.role,
        password_hash=row.password_hash,
        mfa_enabled=bool(row.mfa_enabled),
        mfa_secret=row.mfa_secret,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_login=row.last_login,
    )
