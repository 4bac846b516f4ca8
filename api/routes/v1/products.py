"""
api/routes/v1/products.py -- Product CRUD endpoints.

Routes:
  GET    /api/products          -- list products (any role)
  GET    /api/products/{id}     -- product detail (any role)
  POST   /api/products          -- create (ADMIN, MANAGER; audited)
  PUT    /api/products/{id}     -- partial update (ADMIN, MANAGER; audited)
  DELETE /api/products/{id}     -- delete (ADMIN, MANAGER; audited)

Handlers that carry @audited take `request` so the recorder can
reach the stores and the resolved identity. Annotations in this module are
evaluated eagerly on purpose: FastAPI reads them through the audited wrapper.
"""

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, ProductCreate, ProductResponse, ProductUpdate
from audit.models import AuditAction, AuditResource
from audit.recorder import audited
from auth.dependencies import get_current_identity, require_roles
from auth.models import Role
from core.errors import NotFound
from inventory.models import Product
from inventory.store import InventoryStore

router = APIRouter(dependencies=[Depends(get_current_identity)])

_editors = require_roles(Role.ADMIN, Role.MANAGER)


def _to_response(product: Product) -> ProductResponse:
    return ProductResponse(
        id=product.id,
        name=product.name,
        sku=product.sku,
        category_id=product.category_id,
        category_name=product.category_name,
        description=product.description,
        price=product.price,
        quantity=product.quantity,
        min_stock_level=product.min_stock_level,
        supplier_id=product.supplier_id,
        supplier_name=product.supplier_name,
        stock_status=product.stock_status,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def _load(store: InventoryStore, product_id: int) -> Product:
    product = store.get_product(product_id)
    if product is None:
        raise NotFound("Product not found")
    return product


def _snapshot(request: Request, product_id: str):
    """Before-snapshot for the audit trail: the product as GET would return it."""
    product = request.app.state.inventory_store.get_product(int(product_id))
    if product is None:
        return None
    return _to_response(product).model_dump(mode="json", by_alias=True)


@router.get("/products", response_model=list[ProductResponse])
def list_products(request: Request) -> list[ProductResponse]:
    store: InventoryStore = request.app.state.inventory_store
    return [_to_response(p) for p in store.list_products()]


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(request: Request, product_id: int) -> ProductResponse:
    return _to_response(_load(request.app.state.inventory_store, product_id))


@router.post(
    "/products",
    response_model=ProductResponse,
    status_code=201,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.CREATE, AuditResource.PRODUCT)
def create_product(request: Request, body: ProductCreate) -> ProductResponse:
    store: InventoryStore = request.app.state.inventory_store
    product_id = store.create_product(Product(**body.model_dump()))
    return _to_response(_load(store, product_id))


@router.put(
    "/products/{product_id}",
    response_model=ProductResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.UPDATE, AuditResource.PRODUCT, capture=_snapshot)
def update_product(request: Request, product_id: int, body: ProductUpdate) -> ProductResponse:
    """Merge the submitted fields into the product. Omitted fields keep their value."""
    store: InventoryStore = request.app.state.inventory_store
    fields = body.model_dump(exclude_unset=True)
    if fields:
        if not store.update_product(product_id, **fields):
            raise NotFound("Product not found")
    return _to_response(_load(store, product_id))


@router.delete(
    "/products/{product_id}",
    response_model=MessageResponse,
    dependencies=[Depends(_editors)],
)
@audited(AuditAction.DELETE, AuditResource.PRODUCT, capture=_snapshot)
def delete_product(request: Request, product_id: int) -> MessageResponse:
    store: InventoryStore = request.app.state.inventory_store
    if not store.delete_product(product_id):
        raise NotFound("Product not found")
    return MessageResponse(message="Product deleted successfully")
