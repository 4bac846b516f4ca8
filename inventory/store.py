"""
inventory/store.py -- SQLAlchemy Core persistence for products, categories and suppliers.

Pattern: Repository + Data Mapper. InventoryStore is the repository (one
clean interface per entity); the _row_to_* functions are the mappers.
Route handlers never touch SQL directly.

Persistence invariants enforced here:
  - product SKU is upper-cased and unique            -> Conflict
  - category name is unique                          -> Conflict
  - product.category_id / supplier_id must exist     -> ValidationFailed
  - a category or supplier still referenced by a product cannot be deleted
                                                     -> Conflict

Concurrency: last write wins. There is no optimistic locking; two concurrent
updates to the same row both succeed in arrival order.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from core.database import make_engine, now_iso
from core.errors import Conflict, ValidationFailed
from inventory.models import Category, Product, Supplier

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_categories = Table(
    "categories",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(50), nullable=False, unique=True),
    Column("description", String(200)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_suppliers = Table(
    "suppliers",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("contact_email", String(255), nullable=False),
    Column("contact_phone", String(20)),
    Column("address", String(300)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_products = Table(
    "products",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("sku", String(50), nullable=False, unique=True),
    Column("category_id", Integer, nullable=False),
    Column("description", Text),
    Column("price", Float, nullable=False),
    Column("quantity", Integer, nullable=False, server_default="0"),
    Column("min_stock_level", Integer, nullable=False, server_default="10"),
    Column("supplier_id", Integer),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_PRODUCT_FIELDS = {
    "name",
    "sku",
    "category_id",
    "description",
    "price",
    "quantity",
    "min_stock_level",
    "supplier_id",
}
_CATEGORY_FIELDS = {"name", "description"}
_SUPPLIER_FIELDS = {"name", "contact_email", "contact_phone", "address"}


def _check_fields(fields: dict, allowed: set, required: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)!r}")
    for name in required:
        if name in fields and fields[name] is None:
            raise ValidationFailed(f"{name} cannot be empty")


class InventoryStore:
    """Repository for Product, Category and Supplier entities.

    Usage:
        store = InventoryStore("sqlite:///inventory.db")
        cid = store.create_category(Category(name="Tools"))
        pid = store.create_product(Product(name="Hammer", sku="hm-1", category_id=cid, price=9.5))
        store.get_product(pid).stock_status   # "OUT_OF_STOCK"
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = make_engine(db_url)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def create_category(self, category: Category) -> int:
        now = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _categories.insert().values(
                        name=category.name.strip(),
                        description=category.description,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("Category already exists") from exc
        return result.inserted_primary_key[0]

    def get_category(self, category_id: int) -> Category | None:
        with self.engine.connect() as conn:
            row = conn.execute(_categories.select().where(_categories.c.id == category_id)).fetchone()
        return _row_to_category(row) if row is not None else None

    def list_categories(self) -> list[Category]:
        with self.engine.connect() as conn:
            rows = conn.execute(_categories.select().order_by(_categories.c.name)).fetchall()
        return [_row_to_category(r) for r in rows]

    def update_category(self, category_id: int, **fields) -> bool:
        _check_fields(fields, _CATEGORY_FIELDS, {"name"})
        if "name" in fields:
            fields["name"] = fields["name"].strip()
        fields["updated_at"] = now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_categories.update().where(_categories.c.id == category_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("Category already exists") from exc
        return result.rowcount > 0

    def delete_category(self, category_id: int) -> bool:
        with self.engine.connect() as conn:
            in_use = conn.execute(
                select(func.count()).select_from(_products).where(_products.c.category_id == category_id)
            ).scalar()
            if in_use:
                raise Conflict(f"Category is used by {in_use} product(s)")
            result = conn.execute(_categories.delete().where(_categories.c.id == category_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(self, supplier: Supplier) -> int:
        now = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(
                _suppliers.insert().values(
                    name=supplier.name.strip(),
                    contact_email=supplier.contact_email.strip().lower(),
                    contact_phone=supplier.contact_phone,
                    address=supplier.address,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return result.inserted_primary_key[0]

    def get_supplier(self, supplier_id: int) -> Supplier | None:
        with self.engine.connect() as conn:
            row = conn.execute(_suppliers.select().where(_suppliers.c.id == supplier_id)).fetchone()
        return _row_to_supplier(row) if row is not None else None

    def list_suppliers(self) -> list[Supplier]:
        with self.engine.connect() as conn:
            rows = conn.execute(_suppliers.select().order_by(_suppliers.c.name)).fetchall()
        return [_row_to_supplier(r) for r in rows]

    def update_supplier(self, supplier_id: int, **fields) -> bool:
        _check_fields(fields, _SUPPLIER_FIELDS, {"name", "contact_email"})
        if fields.get("contact_email"):
            fields["contact_email"] = fields["contact_email"].strip().lower()
        fields["updated_at"] = now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_suppliers.update().where(_suppliers.c.id == supplier_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_supplier(self, supplier_id: int) -> bool:
        with self.engine.connect() as conn:
            in_use = conn.execute(
                select(func.count()).select_from(_products).where(_products.c.supplier_id == supplier_id)
            ).scalar()
            if in_use:
                raise Conflict(f"Supplier is used by {in_use} product(s)")
            result = conn.execute(_suppliers.delete().where(_suppliers.c.id == supplier_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    def _check_references(self, conn, category_id: int | None, supplier_id: int | None) -> None:
        if category_id is not None:
            found = conn.execute(select(_categories.c.id).where(_categories.c.id == category_id)).fetchone()
            if found is None:
                raise ValidationFailed(f"Category {category_id} does not exist")
        if supplier_id is not None:
            found = conn.execute(select(_suppliers.c.id).where(_suppliers.c.id == supplier_id)).fetchone()
            if found is None:
                raise ValidationFailed(f"Supplier {supplier_id} does not exist")

    def create_product(self, product: Product) -> int:
        now = now_iso()
        try:
            with self.engine.connect() as conn:
                self._check_references(conn, product.category_id, product.supplier_id)
                result = conn.execute(
                    _products.insert().values(
                        name=product.name.strip(),
                        sku=product.sku.strip().upper(),
                        category_id=product.category_id,
                        description=product.description,
                        price=product.price,
                        quantity=product.quantity,
                        min_stock_level=product.min_stock_level,
                        supplier_id=product.supplier_id,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("A product with that SKU already exists") from exc
        return result.inserted_primary_key[0]

    def get_product(self, product_id: int) -> Product | None:
        with self.engine.connect() as conn:
            row = conn.execute(_product_select().where(_products.c.id == product_id)).fetchone()
        return _row_to_product(row) if row is not None else None

    def list_products(self) -> list[Product]:
        with self.engine.connect() as conn:
            rows = conn.execute(_product_select().order_by(_products.c.name, _products.c.id)).fetchall()
        return [_row_to_product(r) for r in rows]

    def update_product(self, product_id: int, **fields) -> bool:
        """Merge the given fields into an existing product.

        Returns False if product_id does not exist.
        """
        _check_fields(fields, _PRODUCT_FIELDS, _PRODUCT_FIELDS - {"description", "supplier_id"})
        if fields.get("sku"):
            fields["sku"] = fields["sku"].strip().upper()
        fields["updated_at"] = now_iso()
        try:
            with self.engine.connect() as conn:
                self._check_references(conn, fields.get("category_id"), fields.get("supplier_id"))
                result = conn.execute(_products.update().where(_products.c.id == product_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise Conflict("A product with that SKU already exists") from exc
        return result.rowcount > 0

    def delete_product(self, product_id: int) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_products.delete().where(_products.c.id == product_id))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _product_select():
    return select(
        _products,
        _categories.c.name.label("category_name"),
        _suppliers.c.name.label("supplier_name"),
    ).select_from(
        _products.outerjoin(_categories, _products.c.category_id == _categories.c.id).outerjoin(
            _suppliers, _products.c.supplier_id == _suppliers.c.id
        )
    )


def _row_to_category(row) -> Category:
    return Category(
        id=row.id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_supplier(row) -> Supplier:
    return Supplier(
        id=row.id,
        name=row.name,
        contact_email=row.contact_email,
        contact_phone=row.contact_phone,
        address=row.address,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_product(row) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        sku=row.sku,
        category_id=row.category_id,
        description=row.description,
        price=row.price,
        quantity=row.quantity,
        min_stock_level=row.min_stock_level,
        supplier_id=row.supplier_id,
        category_name=row.category_name,
        supplier_name=row.supplier_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
