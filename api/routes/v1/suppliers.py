"""
api/routes/v1/suppliers.py -- Supplier CRUD endpoints.

Same policy as categories: any role reads, ADMIN/MANAGER mutate, every
mutation is audited, and a supplier referenced by a product is not deletable.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, SupplierCreate, SupplierResponse, SupplierUpdate
from audit.models import AuditAction, AuditResource
from audit.recorder import audited
from auth.dependencies import get_current_identity, require_roles
from auth.models import Role
from core.errors import NotFound
from inventory.models import Supplier
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_current_identity)])

_editors = require_roles(Role.ADMIN, Role.MANAGER)


def _to_response(supplier: Supplier) -> SupplierResponse:
    return SupplierResponse(
        id=supplier.id,
        name=supplier.name,
        contact_email=supplier.contact_email,
        contact_phone=supplier.contact_phone,
        address=supplier.address,
        created_at=supplier.created_at,
        updated_at=supplier.updated_at,
    )


def _load(store: InventoryStore, supplier_id: int) -> Supplier:
    supplier = store.get_supplier(supplier_id)
    if supplier is None:
        raise NotFound("Supplier not found")
    return supplier


def _snapshot(request: Request, supplier_id: str):
    supplier = request.app.state.inventory_store.get_supplier(int(supplier_id))
    if supplier is None:
        return None
    return _to_response(supplier).model_dump(mode="json", by_alias=True)


@router.get("/suppliers", response_model=list[SupplierResponse])
def list_suppliers(request: Request) -> list[SupplierResponse]:
    store: InventoryStore = request.app.state.inventory_store
    return [_to_response(s) for s in store.list_suppliers()]


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
def get_supplier(request: Request, supplier_id: int) -> SupplierResponse:
    return _to_response(_load(request.app.state.inventory_store, supplier_id))


@router.post(
    "/suppliers",
    response_model=SupplierResponse,
    status_code=201,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.CREATE, AuditResource.SUPPLIER)
def create_supplier(request: Request, body: SupplierCreate) -> SupplierResponse:
    store: InventoryStore = request.app.state.inventory_store
    supplier_id = store.create_supplier(Supplier(**body.model_dump()))
    return _to_response(_load(store, supplier_id))


@router.put(
    "/suppliers/{supplier_id}",
    response_model=SupplierResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.UPDATE, AuditResource.SUPPLIER, capture=_snapshot)
def update_supplier(request: Request, supplier_id: int, body: SupplierUpdate) -> SupplierResponse:
    store: InventoryStore = request.app.state.inventory_store
    fields = body.model_dump(exclude_unset=True)
    if fields and not store.update_supplier(supplier_id, **fields):
        raise NotFound("Supplier not found")
    return _to_response(_load(store, supplier_id))


@router.delete(
    "/suppliers/{supplier_id}",
    response_model=MessageResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.DELETE, AuditResource.SUPPLIER, capture=_snapshot)
def delete_supplier(request: Request, supplier_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory_store
    if not store.delete_supplier(supplier_id):
        raise NotFound("Supplier not found")
    return MessageResponse(message="Supplier deleted successfully")
