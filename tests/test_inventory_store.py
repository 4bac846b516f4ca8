"""Unit tests for inventory/store.py -- products, categories and suppliers.

Covers:
- SKU normalization and uniqueness, category name uniqueness (Conflict)
- referential checks on category_id / supplier_id (ValidationFailed)
- product reads carry category and supplier names, derived stock status
- partial updates, null rejection for required fields
- in-use categories and suppliers cannot be deleted
"""

import pytest

from core.errors import Conflict, ValidationFailed
from inventory.models import IN_STOCK, LOW_STOCK, OUT_OF_STOCK, Category, Product, Supplier
from inventory.store import InventoryStore


@pytest.fixture
def store():
    s = InventoryStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def category_id(store):
    return store.create_category(Category(name="Tools", description="Hand tools"))


@pytest.fixture
def supplier_id(store):
    return store.create_supplier(Supplier(name="Acme", contact_email="Sales@Acme.test", contact_phone="555-0100"))


def _product(category_id: int, **overrides) -> Product:
    fields = {"name": "Hammer", "sku": " hm-001 ", "category_id": category_id, "price": 9.5}
    fields.update(overrides)
    return Product(**fields)


# ---------------------------------------------------------------------------
# Categories and suppliers
# ---------------------------------------------------------------------------


def test_category_name_is_unique(store, category_id):
    with pytest.raises(Conflict):
        store.create_category(Category(name="Tools"))


def test_update_category(store, category_id):
    assert store.update_category(category_id, description="Everything with a handle")
    assert store.get_category(category_id).description == "Everything with a handle"
    assert store.update_category(999, name="Ghost") is False


def test_category_name_cannot_be_nulled(store, category_id):
    with pytest.raises(ValidationFailed):
        store.update_category(category_id, name=None)


def test_supplier_email_is_lower_cased(store, supplier_id):
    assert store.get_supplier(supplier_id).contact_email == "sales@acme.test"


def test_list_categories_and_suppliers(store, category_id, supplier_id):
    store.create_category(Category(name="Adhesives"))
    assert [c.name for c in store.list_categories()] == ["Adhesives", "Tools"]
    assert [s.id for s in store.list_suppliers()] == [supplier_id]


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


def test_create_product_normalizes_sku_and_joins_names(store, category_id, supplier_id):
    pid = store.create_product(_product(category_id, supplier_id=supplier_id))
    product = store.get_product(pid)
    assert product.sku == "HM-001"
    assert product.category_name == "Tools"
    assert product.supplier_name == "Acme"
    assert product.quantity == 0
    assert product.min_stock_level == 10


def test_duplicate_sku_is_conflict_regardless_of_case(store, category_id):
    store.create_product(_product(category_id))
    with pytest.raises(Conflict):
        store.create_product(_product(category_id, name="Other hammer", sku="HM-001"))


def test_unknown_category_is_validation_error(store):
    with pytest.raises(ValidationFailed):
        store.create_product(_product(12345))


def test_unknown_supplier_is_validation_error(store, category_id):
    with pytest.raises(ValidationFailed):
        store.create_product(_product(category_id, supplier_id=777))


@pytest.mark.parametrize(
    ("quantity", "min_stock_level", "expected"),
    [(0, 10, OUT_OF_STOCK), (10, 10, LOW_STOCK), (3, 10, LOW_STOCK), (11, 10, IN_STOCK), (0, 0, OUT_OF_STOCK)],
)
def test_stock_status(quantity, min_stock_level, expected):
    product = Product(name="x", sku="x", category_id=1, price=1.0, quantity=quantity, min_stock_level=min_stock_level)
    assert product.stock_status == expected


def test_partial_update_keeps_other_fields(store, category_id):
    pid = store.create_product(_product(category_id, quantity=4, description="Claw hammer"))
    assert store.update_product(pid, price=12.0, sku="hm-002")
    product = store.get_product(pid)
    assert product.price == 12.0
    assert product.sku == "HM-002"
    assert product.quantity == 4
    assert product.description == "Claw hammer"


def test_update_to_unknown_category_is_validation_error(store, category_id):
    pid = store.create_product(_product(category_id))
    with pytest.raises(ValidationFailed):
        store.update_product(pid, category_id=999)


def test_required_product_fields_cannot_be_nulled(store, category_id):
    pid = store.create_product(_product(category_id))
    with pytest.raises(ValidationFailed):
        store.update_product(pid, price=None)
    with pytest.raises(ValidationFailed):
        store.update_product(pid, category_id=None)


def test_optional_product_fields_can_be_cleared(store, category_id, supplier_id):
    pid = store.create_product(_product(category_id, supplier_id=supplier_id, description="x"))
    store.update_product(pid, supplier_id=None, description=None)
    product = store.get_product(pid)
    assert product.supplier_id is None
    assert product.supplier_name is None
    assert product.description is None


def test_update_missing_product_returns_false(store, category_id):
    assert store.update_product(999, price=1.0) is False


def test_delete_product(store, category_id):
    pid = store.create_product(_product(category_id))
    assert store.delete_product(pid) is True
    assert store.get_product(pid) is None
    assert store.delete_product(pid) is False


def test_category_in_use_cannot_be_deleted(store, category_id):
    store.create_product(_product(category_id))
    with pytest.raises(Conflict):
        store.delete_category(category_id)


def test_supplier_in_use_cannot_be_deleted(store, category_id, supplier_id):
    store.create_product(_product(category_id, supplier_id=supplier_id))
    with pytest.raises(Conflict):
        store.delete_supplier(supplier_id)


def test_unused_category_can_be_deleted(store, category_id):
    assert store.delete_category(category_id) is True
    assert store.get_category(category_id) is None
