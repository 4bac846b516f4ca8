"""
api/routes/v1/audit.py -- Read-only access to the audit trail (ADMIN only).

Routes:
  GET /api/audit-logs         -- paginated, filtered listing, newest first
  GET /api/audit-logs/{id}    -- a single entry

There are no mutation routes: entries are written only by audit.recorder.

Entries store the actor's id, not a copy of the actor. The name and email are
looked up at read time, once per distinct actor on the page; a deleted actor
shows with name and email set to null.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from api.models import AuditActor, AuditLogPage, AuditLogResponse
from audit.models import AuditAction, AuditEntry, AuditResource
from audit.store import AuditQuery, AuditStore
from auth.dependencies import require_roles
from auth.models import Role
from core.config import get_settings
from core.errors import NotFound

router = APIRouter(dependencies=[Depends(require_roles(Role.ADMIN))])


def _actors(request: Request, entries: list[AuditEntry]) -> dict[int, AuditActor]:
    user_store = request.app.state.user_store
    actors: dict[int, AuditActor] = {}
    for user_id in {e.user_id for e in entries}:
        user = user_store.get_by_id(user_id)
        actors[user_id] = AuditActor(
            id=user_id,
            name=user.name if user else None,
            email=user.email if user else None,
        )
    return actors


def _to_response(entry: AuditEntry, actor: AuditActor) -> AuditLogResponse:
    return AuditLogResponse(
        id=entry.id,
        user=actor,
        action=entry.action,
        resource=entry.resource,
        resource_id=entry.resource_id,
        old_data=entry.old_data,
        new_data=entry.new_data,
        description=entry.description,
        ip_address=entry.ip_address,
        user_agent=entry.user_agent,
        timestamp=entry.timestamp,
    )


@router.get("/audit-logs", response_model=AuditLogPage)
def list_audit_logs(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1),
    user_id: Optional[int] = Query(default=None, alias="userId"),
    action: Optional[AuditAction] = Query(default=None),
    resource: Optional[AuditResource] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
) -> AuditLogPage:
    """List audit entries. limit is capped at AUDIT_PAGE_SIZE_MAX."""
    limit = min(limit, get_settings().audit_page_size_max)
    store: AuditStore = request.app.state.audit_store
    query = AuditQuery(
        user_id=user_id,
        action=action.value if action else None,
        resource=resource.value if resource else None,
        start=start_date,
        end=end_date,
    )
    entries, total = store.list_entries(query, page=page, limit=limit)
    actors = _actors(request, entries)
    return AuditLogPage(
        count=len(entries),
        total=total,
        page=page,
        pages=math.ceil(total / limit) if total else 0,
        data=[_to_response(e, actors[e.user_id]) for e in entries],
    )


@router.get("/audit-logs/{entry_id}", response_model=AuditLogResponse)
def get_audit_log(request: Request, entry_id: int) -> AuditLogResponse:
    entry = request.app.state.audit_store.get_entry(entry_id)
    if entry is None:
        raise NotFound("Audit log not found")
    return _to_response(entry, _actors(request, [entry])[entry.user_id])
