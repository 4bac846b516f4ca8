"""
audit/models.py -- Domain dataclasses for the audit trail.

An AuditEntry is immutable once written: the application only ever inserts
them. Snapshots are plain JSON-compatible dicts (already sanitized by the
recorder) so the record keeps the document shape it had on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    MFA_SETUP = "MFA_SETUP"
    MFA_VERIFY = "MFA_VERIFY"


class AuditResource(str, Enum):
    USER = "User"
    PRODUCT = "Product"
    CATEGORY = "Category"
    SUPPLIER = "Supplier"
    AUTH = "Auth"


@dataclass(frozen=True)
class AuditEntry:
    user_id: int  # acting user; not a foreign key, survives user deletion
    action: str
    resource: str
    resource_id: str | None = None
    old_data: dict[str, Any] | None = None  # before-snapshot (UPDATE, DELETE)
    new_data: dict[str, Any] | None = None  # after-snapshot (CREATE, UPDATE)
    description: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    timestamp: str = ""  # ISO 8601 UTC, set by the store on insert
    id: int | None = None
