"""
api/routes/v1/categories.py -- Category CRUD endpoints.

Reads are open to every authenticated role; mutations need ADMIN or MANAGER
and are audited. A category still used by a product cannot be deleted (409).
"""

from fastapi import APIRouter, Depends, Request

from api.models import CategoryCreate, CategoryResponse, CategoryUpdate, MessageResponse
from audit.models import AuditAction, AuditResource
from audit.recorder import audited
from auth.dependencies import get_current_identity, require_roles
from auth.models import Role
from core.errors import NotFound
from inventory.models import Category
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_current_identity)])

_editors = require_roles(Role.ADMIN, Role.MANAGER)


def _to_response(category: Category) -> CategoryResponse:
    return CategoryResponse(
        id=category.id,
        name=category.name,
        description=category.description,
        created_at=category.created_at,
        updated_at=category.updated_at,
    )


def _load(store: InventoryStore, category_id: int) -> Category:
    category = store.get_category(category_id)
    if category is None:
        raise NotFound("Category not found")
    return category


def _snapshot(request: Request, category_id: str):
    category = request.app.state.inventory_store.get_category(int(category_id))
    if category is None:
        return None
    return _to_response(category).model_dump(mode="json", by_alias=True)


@router.get("/categories", response_model=list[CategoryResponse])
def list_categories(request: Request) -> list[CategoryResponse]:
    store: InventoryStore = request.app.state.inventory_store
    return [_to_response(c) for c in store.list_categories()]


@router.get("/categories/{category_id}", response_model=CategoryResponse)
def get_category(request: Request, category_id: int) -> CategoryResponse:
    return _to_response(_load(request.app.state.inventory_store, category_id))


@router.post(
    "/categories",
    response_model=CategoryResponse,
    status_code=201,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.CREATE, AuditResource.CATEGORY)
def create_category(request: Request, body: CategoryCreate) -> CategoryResponse:
    store: InventoryStore = request.app.state.inventory_store
    category_id = store.create_category(Category(name=body.name, description=body.description))
    return _to_response(_load(store, category_id))


@router.put(
    "/categories/{category_id}",
    response_model=CategoryResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.UPDATE, AuditResource.CATEGORY, capture=_snapshot)
def update_category(request: Request, category_id: int, body: CategoryUpdate) -> CategoryResponse:
    store: InventoryStore = request.app.state.inventory_store
    fields = body.model_dump(exclude_unset=True)
    if fields and not store.update_category(category_id, **fields):
        raise NotFound("Category not found")
    return _to_response(_load(store, category_id))


@router.delete(
    "/categories/{category_id}",
    response_model=MessageResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.DELETE, AuditResource.CATEGORY, capture=_snapshot)
def delete_category(request: Request, category_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory_store
    if not store.delete_category(category_id):
        raise NotFound("Category not found")
    return MessageResponse(message="Category deleted successfully")
