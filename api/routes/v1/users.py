"""
api/routes/v1/users.py -- User management endpoints (ADMIN only).

Routes:
  GET    /api/users          -- list all users
  GET    /api/users/{id}     -- user detail
  POST   /api/users          -- create user (audited)
  PUT    /api/users/{id}     -- update name / email / password / role (audited)
  DELETE /api/users/{id}     -- delete user (audited)

Guards (409 Conflict):
  - an admin cannot delete their own account;
  - the last ADMIN cannot be demoted or deleted, so there is always a way back in.

Responses are built from UserResponse, which has no password or MFA secret
field. The audit after-snapshot of a create or update is the submitted body;
its password is masked by the recorder before it is stored.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, UserCreate, UserResponse, UserUpdate
from audit.models import AuditAction, AuditResource
from audit.recorder import audited
from auth.dependencies import require_roles
from auth.models import Identity, Role, User
from auth.store import UserStore
from auth.tokens import hash_password
from core.errors import Conflict, Internal, NotFound

router = APIRouter()

_admin_only = require_roles(Role.ADMIN)


# ---------------------------------------------------------------------------
# Helpers (shared with POST /api/auth/register)
# ---------------------------------------------------------------------------


def user_to_response(user: User | None) -> UserResponse:
    if user is None:
        raise Internal("User not found after write")
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        mfa_enabled=user.mfa_enabled,
        created_at=user.created_at,
        updated_at=user.updated_at,
        last_login=user.last_login,
    )


def create_account(store: UserStore, body: UserCreate) -> UserResponse:
    """Hash the password and insert the user. Conflict if the email is taken."""
    user_id = store.create_user(
        User(
            email=body.email,
            name=body.name,
            role=body.role.value,
            password_hash=hash_password(body.password),
        )
    )
    return user_to_response(store.get_by_id(user_id))


def _snapshot(request: Request, user_id: str):
    user = request.app.state.user_store.get_by_id(int(user_id))
    if user is None:
        return None
    return user_to_response(user).model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(_admin_only)])
def list_users(request: Request) -> list[UserResponse]:
    store: UserStore = request.app.state.user_store
    return [user_to_response(u) for u in store.list_users()]


@router.get("/users/{user_id}", response_model=UserResponse, dependencies=[Depends(_admin_only)])
def get_user(request: Request, user_id: int) -> UserResponse:
    user = request.app.state.user_store.get_by_id(user_id)
    if user is None:
        raise NotFound("User not found")
    return user_to_response(user)


@router.post("/users", response_model=UserResponse, status_code=201, dependencies=[Depends(_admin_only)])
@audited(AuditAction.CREATE, AuditResource.USER)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    return create_account(request.app.state.user_store, body)


@router.put("/users/{user_id}", response_model=UserResponse)
@audited(AuditAction.UPDATE, AuditResource.USER, capture=_snapshot)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    identity: Identity = Depends(_admin_only),
) -> UserResponse:
    store: UserStore = request.app.state.user_store
    target = store.get_by_id(user_id)
    if target is None:
        raise NotFound("User not found")

    fields = body.model_dump(exclude_unset=True, exclude_none=True)
    password = fields.pop("password", None)
    if password is not None:
        fields["password_hash"] = hash_password(password)
    if "role" in fields:
        fields["role"] = fields["role"].value
        if target.role == Role.ADMIN.value and fields["role"] != Role.ADMIN.value and store.count_admins() <= 1:
            raise Conflict("Cannot demote the last admin account")

    if fields:
        store.update_user(user_id, **fields)
    return user_to_response(store.get_by_id(user_id))


@router.delete("/users/{user_id}", response_model=MessageResponse)
@audited(AuditAction.DELETE, AuditResource.USER, capture=_snapshot)
def delete_user(
    request: Request,
    user_id: int,
    identity: Identity = Depends(_admin_only),
) -> MessageResponse:
    store: UserStore = request.app.state.user_store
    if user_id == identity.id:
        raise Conflict("You cannot delete your own account")
    target = store.get_by_id(user_id)
    if target is None:
        raise NotFound("User not found")
    if target.role == Role.ADMIN.value and store.count_admins() <= 1:
        raise Conflict("Cannot delete the last admin account")
    store.delete_user(user_id)
    return MessageResponse(message="User deleted successfully")
