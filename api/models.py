"""
API request and response models for the inventory REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer
and are the explicit input-validation layer: field shapes, lengths and ranges
are checked here, before a handler runs. Persistence invariants (unique email,
unique SKU, existing category/supplier ids) are checked by the stores.

They are intentionally separate from the dataclasses in auth/models.py,
audit/models.py and inventory/models.py, which own the internal domain
representation. Route handlers map between the two.

Wire format is camelCase (mfaRequired, tempToken, categoryId, ...). Every model
derives from _CamelModel, which generates the aliases and still accepts the
snake_case field names when the models are built in Python.

No response model has a password_hash or mfa_secret field, so no read path can
serialize them by accident.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import Role
from auth.tokens import MAX_PASSWORD_BYTES

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^\S+@\S+\.\S+$"
MFA_CODE_PATTERN = r"^[0-9]{6}$"


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    """bcrypt hashes at most 72 bytes; a multi-byte password reaches that before 72 characters."""
    if value is not None and len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class _CamelResponse(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class FieldErrorDetail(_CamelResponse):
    field: str
    message: str


class ErrorResponse(_CamelResponse):
    """Error envelope returned by every exception handler in api/main.py."""

    code: str
    message: str
    errors: Optional[list[FieldErrorDetail]] = None


class MessageResponse(_CamelResponse):
    success: bool = True
    message: str


class HealthResponse(_CamelResponse):
    status: str = "OK"
    message: str = "API is running"
    version: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(_CamelModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class IdentityResponse(_CamelResponse):
    """The authenticated user as returned by login, verify-mfa and /auth/me."""

    id: int
    name: str
    email: str
    role: str
    mfa_enabled: bool = False


class LoginResponse(_CamelResponse):
    """Either a session (user set, cookie on the response) or an MFA challenge (temp_token set)."""

    mfa_required: bool = False
    temp_token: Optional[str] = None
    user: Optional[IdentityResponse] = None


class MfaVerifyRequest(_CamelModel):
    temp_token: str = Field(min_length=1, max_length=2048)
    mfa_code: str = Field(pattern=MFA_CODE_PATTERN)


class MfaSetupVerifyRequest(_CamelModel):
    mfa_code: str = Field(pattern=MFA_CODE_PATTERN)


class MfaSetupResponse(_CamelResponse):
    """Enrollment payload. qr_code is a data: URL the front end renders as an <img>."""

    qr_code: str
    provisioning_uri: str
    secret: str


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(_CamelModel):
    name: str = Field(min_length=2, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=6, max_length=128)
    role: Role = Role.VIEWER

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserUpdate(_CamelModel):
    """Partial update. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    password: Optional[str] = Field(default=None, min_length=6, max_length=128)
    role: Optional[Role] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserResponse(_CamelResponse):
    id: int
    name: str
    email: str
    role: str
    mfa_enabled: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_login: Optional[str] = None


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryCreate(_CamelModel):
    name: str = Field(min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)


class CategoryUpdate(_CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    description: Optional[str] = Field(default=None, max_length=200)


class CategoryResponse(_CamelResponse):
    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------------


class SupplierCreate(_CamelModel):
    name: str = Field(min_length=2, max_length=100)
    contact_email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=300)


class SupplierUpdate(_CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    contact_email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    contact_phone: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=300)


class SupplierResponse(_CamelResponse):
    id: int
    name: str
    contact_email: str
    contact_phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------


class ProductCreate(_CamelModel):
    name: str = Field(min_length=2, max_length=100)
    sku: str = Field(min_length=1, max_length=50)
    category_id: int = Field(gt=0)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: float = Field(ge=0)
    quantity: int = Field(default=0, ge=0)
    min_stock_level: int = Field(default=10, ge=0)
    supplier_id: Optional[int] = Field(default=None, gt=0)


class ProductUpdate(_CamelModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=50)
    category_id: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, max_length=1000)
    price: Optional[float] = Field(default=None, ge=0)
    quantity: Optional[int] = Field(default=None, ge=0)
    min_stock_level: Optional[int] = Field(default=None, ge=0)
    supplier_id: Optional[int] = Field(default=None, gt=0)


class ProductResponse(_CamelResponse):
    id: int
    name: str
    sku: str
    category_id: int
    category_name: Optional[str] = None
    description: Optional[str] = None
    price: float
    quantity: int
    min_stock_level: int
    supplier_id: Optional[int] = None
    supplier_name: Optional[str] = None
    stock_status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


class AuditActor(_CamelResponse):
    """The acting user, resolved at read time. name/email are None once the user is deleted."""

    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class AuditLogResponse(_CamelResponse):
    id: int
    user: AuditActor
    action: str
    resource: str
    resource_id: Optional[str] = None
    old_data: Optional[dict[str, Any]] = None
    new_data: Optional[dict[str, Any]] = None
    description: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: str


class AuditLogPage(_CamelResponse):
    count: int
    total: int
    page: int
    pages: int
    data: list[AuditLogResponse] = Field(default_factory=list)
