"""
audit/recorder.py -- Best-effort audit recording for authenticated mutations.

Two entry points:

  audited(action, resource, capture=..., id_param=...)
      Per-route decorator. Apply it beneath the router decorator:

          @router.put("/products/{product_id}", dependencies=[Depends(require_roles(...))])
          @audited(AuditAction.UPDATE, AuditResource.PRODUCT, capture=_product_snapshot)
          def update_product(request: Request, product_id: int, body: ProductUpdate): ...

      Per request it runs, in order:
        1. capture(request, resource_id) for UPDATE/DELETE -- the before-snapshot,
           taken before the handler mutates anything;
        2. the handler itself;
        3. one AuditEntry write, if the gate attached an Identity;
        4. returns the handler's result unchanged.

  record_event(request, actor_id=..., action=..., resource=...)
      Direct call for flows with no single route-shaped mutation (login,
      logout, MFA enrollment).

Failure policy: audit is best-effort. A failing capture leaves the
before-snapshot empty; a failing write is logged with its traceback and
swallowed. Neither ever changes the response the handler produced.

Layer rule: imports from core/, auth.models and audit/ only.
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from fastapi import Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from audit.models import AuditAction, AuditEntry, AuditResource

logger = logging.getLogger("inventory.audit")

SENSITIVE_KEYS = {
    "password",
    "password_hash",
    "passwordHash",
    "mfa_secret",
    "mfaSecret",
    "secret",
    "token",
    "tempToken",
    "mfaCode",
}

_REDACTED = "***"

CaptureFn = Callable[[Request, str], "dict | None"]


def sanitize_snapshot(data: Any) -> Any:
    """Return a copy of data with credential-bearing keys masked, recursively."""
    if isinstance(data, Mapping):
        return {
            key: (_REDACTED if key in SENSITIVE_KEYS and value is not None else sanitize_snapshot(value))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [sanitize_snapshot(item) for item in data]
    return data


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _describe(action: str, resource: str, resource_id: str | None) -> str:
    suffix = f" {resource_id}" if resource_id else ""
    if action == AuditAction.CREATE.value:
        return f"Created new {resource}{suffix}"
    if action == AuditAction.UPDATE.value:
        return f"Updated {resource}{suffix}"
    if action == AuditAction.DELETE.value:
        return f"Deleted {resource}{suffix}"
    return f"{action} {resource}{suffix}"


def _value(member: Any) -> str:
    return member.value if isinstance(member, (AuditAction, AuditResource)) else str(member)


def record_event(
    request: Request,
    *,
    actor_id: int,
    action: AuditAction | str,
    resource: AuditResource | str,
    resource_id: str | int | None = None,
    before: dict | None = None,
    after: dict | None = None,
    description: str | None = None,
) -> int | None:
    """Write one audit entry. Returns its id, or None if the write failed.

    Never raises: the caller's response must not depend on the audit store.
    """
    action_value = _value(action)
    resource_value = _value(resource)
    rid = str(resource_id) if resource_id is not None else None
    entry = AuditEntry(
        user_id=actor_id,
        action=action_value,
        resource=resource_value,
        resource_id=rid,
        old_data=sanitize_snapshot(before) if before is not None else None,
        new_data=sanitize_snapshot(after) if after is not None else None,
        description=description or _describe(action_value, resource_value, rid),
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    try:
        return request.app.state.audit_store.record(entry)
    except Exception:
        logger.exception(
            "Audit logging error: %s %s id=%s by user id=%s was not recorded",
            action_value,
            resource_value,
            rid,
            actor_id,
        )
        return None


# ---------------------------------------------------------------------------
# Decorator
# ---------------------------------------------------------------------------


def _resource_id(request: Request, id_param: str | None) -> str | None:
    params = request.path_params
    if id_param is not None:
        value = params.get(id_param)
        return str(value) if value is not None else None
    if len(params) == 1:
        return str(next(iter(params.values())))
    return None


def _result_id(result: Any) -> str | None:
    """Pull the new resource's id out of a CREATE handler's result, if it has one."""
    value = result.get("id") if isinstance(result, Mapping) else getattr(result, "id", None)
    return str(value) if value is not None else None


def _body_snapshot(kwargs: Mapping[str, Any]) -> dict | None:
    """The submitted request body: the first pydantic model among the handler's arguments."""
    for value in kwargs.values():
        if isinstance(value, BaseModel):
            return value.model_dump(mode="json", by_alias=True, exclude_unset=True)
    return None


def _safe_capture(capture: CaptureFn, request: Request, resource_id: str) -> dict | None:
    try:
        return capture(request, resource_id)
    except Exception:
        logger.exception("Error capturing original data for %s %s", request.url.path, resource_id)
        return None


def audited(
    action: AuditAction,
    resource: AuditResource,
    *,
    capture: CaptureFn | None = None,
    id_param: str | None = None,
) -> Callable:
    """Wrap a route handler so its mutation is recorded in the audit trail.

    Sync handlers run in the threadpool, as FastAPI would run them undecorated.

    capture: sync callable (request, resource_id) -> dict | None returning the
        resource's current state. Called for UPDATE and DELETE only.
    id_param: name of the path parameter that holds the resource id. Defaults
        to the route's only path parameter, if it has exactly one.
    """

    def decorator(handler: Callable) -> Callable:
        is_async = inspect.iscoroutinefunction(handler)
        if "request" not in inspect.signature(handler).parameters:
            raise TypeError(f"audited() handler {handler.__qualname__} must accept a 'request' parameter")

        @functools.wraps(handler)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            request: Request = kwargs["request"]
            resource_id = _resource_id(request, id_param)

            before = None
            if capture is not None and resource_id is not None and action in (AuditAction.UPDATE, AuditAction.DELETE):
                before = await run_in_threadpool(_safe_capture, capture, request, resource_id)

            if is_async:
                result = await handler(*args, **kwargs)
            else:
                result = await run_in_threadpool(handler, *args, **kwargs)

            identity = getattr(request.state, "identity", None)
            if identity is None:
                return result

            after = _body_snapshot(kwargs) if action in (AuditAction.CREATE, AuditAction.UPDATE) else None
            if resource_id is None and action == AuditAction.CREATE:
                resource_id = _result_id(result)
            await run_in_threadpool(
                functools.partial(
                    record_event,
                    request,
                    actor_id=identity.id,
                    action=action,
                    resource=resource,
                    resource_id=resource_id,
                    before=before,
                    after=after,
                )
            )
            return result

        return wrapper

    return decorator
