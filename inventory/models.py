"""
inventory/models.py -- Domain dataclasses for products, categories and suppliers.

Pure data containers. Persistence invariants (SKU/category-name uniqueness,
referential existence of category and supplier ids) live in inventory/store.py;
field shape constraints live in the api/ request models.
"""

from dataclasses import dataclass
from typing import Optional

OUT_OF_STOCK = "OUT_OF_STOCK"
LOW_STOCK = "LOW_STOCK"
IN_STOCK = "IN_STOCK"


@dataclass
class Category:
    name: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Supplier:
    name: str
    contact_email: str
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class Product:
    """A stocked item.

    category_name / supplier_name are filled in by the store on reads so
    responses can show them without a second lookup; they are never written.
    """

    name: str
    sku: str  # upper-cased by the store
    category_id: int
    price: float
    quantity: int = 0
    min_stock_level: int = 10
    description: Optional[str] = None
    supplier_id: Optional[int] = None
    id: Optional[int] = None
    category_name: Optional[str] = None
    supplier_name: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    @property
    def stock_status(self) -> str:
        if self.quantity == 0:
            return OUT_OF_STOCK
        if self.quantity <= self.min_stock_level:
            return LOW_STOCK
        return IN_STOCK
