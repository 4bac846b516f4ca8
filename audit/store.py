"""
audit/store.py -- Append-only SQLAlchemy Core persistence for audit entries.

Pattern: Repository + Data Mapper, like auth/store.py. AuditStore exposes
record() and read queries only -- there is deliberately no update or delete
method. Snapshots are serialized to JSON TEXT columns so each entry keeps the
document shape of the payload it describes.

Timestamps are stored as ISO 8601 UTC strings produced by core.database.now_iso(),
so lexical comparison in the range filters matches chronological order.

Layer rule: imports from core/ and audit.models only.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine

from audit.models import AuditEntry
from core.database import make_engine, now_iso

_metadata = MetaData()

_audit_logs = Table(
    "audit_logs",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("action", String(20), nullable=False),
    Column("resource", String(20), nullable=False),
    Column("resource_id", String(64)),
    Column("old_data", Text),  # JSON
    Column("new_data", Text),  # JSON
    Column("description", Text),
    Column("ip_address", String(64)),
    Column("user_agent", Text),
    Column("timestamp", String(32), nullable=False),
    Index("ix_audit_user_ts", "user_id", "timestamp"),
    Index("ix_audit_action_ts", "action", "timestamp"),
    Index("ix_audit_resource_ts", "resource", "timestamp"),
)


@dataclass(frozen=True)
class AuditQuery:
    """Filters for list_entries(). Every field is optional; None means "any"."""

    user_id: int | None = None
    action: str | None = None
    resource: str | None = None
    start: datetime | None = None
    end: datetime | None = None


def _to_utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _dump(data: dict | None) -> str | None:
    if data is None:
        return None
    return json.dumps(data, default=str)


def _load(raw: str | None) -> dict | None:
    if raw is None:
        return None
    return json.loads(raw)


class AuditStore:
    """Repository for AuditEntry records. Insert and read only."""

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    def record(self, entry: AuditEntry) -> int:
        """Persist one entry and return its id. The store stamps the timestamp."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _audit_logs.insert().values(
                    user_id=entry.user_id,
                    action=entry.action,
                    resource=entry.resource,
                    resource_id=entry.resource_id,
                    old_data=_dump(entry.old_data),
                    new_data=_dump(entry.new_data),
                    description=entry.description,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    timestamp=entry.timestamp or now_iso(),
                )
            )
            conn.commit()
        return result.inserted_primary_key[0]

    def get_entry(self, entry_id: int) -> AuditEntry | None:
        with self.engine.connect() as conn:
            row = conn.execute(_audit_logs.select().where(_audit_logs.c.id == entry_id)).fetchone()
        return _row_to_entry(row) if row is not None else None

    def list_entries(self, query: AuditQuery, page: int = 1, limit: int = 50) -> tuple[list[AuditEntry], int]:
        """Return (entries for the page, total matching count), newest first."""
        conditions = []
        if query.user_id is not None:
            conditions.append(_audit_logs.c.user_id == query.user_id)
        if query.action:
            conditions.append(_audit_logs.c.action == query.action)
        if query.resource:
            conditions.append(_audit_logs.c.resource == query.resource)
        if query.start is not None:
            conditions.append(_audit_logs.c.timestamp >= _to_utc_iso(query.start))
        if query.end is not None:
            conditions.append(_audit_logs.c.timestamp <= _to_utc_iso(query.end))

        page = max(page, 1)
        stmt = (
            _audit_logs.select()
            .where(*conditions)
            .order_by(_audit_logs.c.timestamp.desc(), _audit_logs.c.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(_audit_logs).where(*conditions)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).fetchall()
            total = conn.execute(count_stmt).scalar() or 0
        return [_row_to_entry(r) for r in rows], total

    def close(self) -> None:
        self.engine.dispose()


def _row_to_entry(row) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        user_id=row.user_id,
        action=row.action,
        resource=row.resource,
        resource_id=row.resource_id,
        old_data=_load(row.old_data),
        new_data=_load(row.new_data),
        description=row.description,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
        timestamp=row.timestamp,
    )
