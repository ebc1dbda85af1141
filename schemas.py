"""
Database Schemas

MongoDB collection schemas and request payloads, defined as Pydantic models.
Each collection model's lowercased class name is its collection name
(Product -> "product", Order -> "order", ...).

Documents are stored with the same camelCase keys the API speaks, so every
model uses a camelCase alias generator and accepts either spelling on input.
"""

from datetime import datetime
from typing import Annotated, ClassVar, FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, StringConstraints, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from database import Lifecycle

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
PhoneNumber = Annotated[str, StringConstraints(strip_whitespace=True, pattern=r"^\+?[\d\s\-\(\)\.]+$")]

Role = Literal["customer", "admin", "guest"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
AddressType = Literal["home", "work", "other"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PartialUpdate(CamelModel):
    """
    Base for partial updates: omitted fields are left alone.
    An explicit null is only accepted for fields listed in ``clearable``.
    """
    clearable: ClassVar[FrozenSet[str]] = frozenset()

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name not in cls.clearable:
            raise ValueError("must not be null")
        return value


# -----------------------------
# Collections
# -----------------------------

class Rating(CamelModel):
    average: float = Field(0, ge=0, le=5)
    count: int = Field(0, ge=0)


class Product(CamelModel):
    """
    Products collection schema
    Collection name: "product"
    """
    name: NonEmptyStr
    description: NonEmptyStr
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    category: NonEmptyStr = Field(..., description="Category id")
    brand: NonEmptyStr
    stock: int = Field(..., ge=0)
    images: List[str] = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)
    is_featured: bool = False
    sku: Optional[str] = None
    rating: Optional[Rating] = None
    status: Lifecycle = Lifecycle.ACTIVE


class Category(CamelModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: NonEmptyStr
    description: NonEmptyStr
    parent_id: Optional[str] = None
    image_url: Optional[HttpUrl] = None
    status: Lifecycle = Lifecycle.ACTIVE


class Preferences(CamelModel):
    newsletter: bool = False
    notifications: bool = True


class Address(CamelModel):
    """Embedded in user.addresses, never a collection of its own."""
    id: str
    type: AddressType
    is_default: bool = False
    street: NonEmptyStr
    city: NonEmptyStr
    state: NonEmptyStr
    zip_code: NonEmptyStr
    country: NonEmptyStr
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    phone_number: Optional[PhoneNumber] = None


class User(CamelModel):
    """
    Users collection schema
    Collection name: "user"
    """
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    email: EmailStr
    password_hash: Optional[str] = None
    role: Role = "customer"
    phone_number: Optional[PhoneNumber] = None
    addresses: List[Address] = Field(default_factory=list)
    preferences: Preferences = Field(default_factory=Preferences)
    token_version: int = 0
    status: Lifecycle = Lifecycle.ACTIVE


class CartItem(CamelModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0)
    image: str = ""
    quantity: int = Field(..., ge=1)


class Cart(CamelModel):
    """
    Carts collection schema
    Collection name: "cart", one document per userId
    """
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    total: float = 0


class Order(CamelModel):
    """
    Orders collection schema
    Collection name: "order"
    """
    user_id: str
    items: List[CartItem]
    total: float = Field(..., ge=0)
    shipping_address: Address
    payment_method: str
    status: OrderStatus = "pending"
    created_at: Optional[datetime] = None


# -----------------------------
# Products
# -----------------------------

class ProductUpdate(PartialUpdate):
    clearable = frozenset({"compare_at_price", "sku"})

    name: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    price: Optional[float] = Field(None, ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)
    category: Optional[NonEmptyStr] = None
    brand: Optional[NonEmptyStr] = None
    stock: Optional[int] = Field(None, ge=0)
    images: Optional[List[str]] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    is_featured: Optional[bool] = None
    sku: Optional[str] = None
    status: Optional[Lifecycle] = None


class StockUpdate(CamelModel):
    stock: int = Field(..., ge=0)
    action: Literal["set", "add", "subtract"] = "set"


class PricingUpdate(CamelModel):
    price: float = Field(..., ge=0)
    compare_at_price: Optional[float] = Field(None, ge=0)


class BulkProductUpdate(CamelModel):
    product_ids: List[str] = Field(..., min_length=1)
    updates: ProductUpdate


# -----------------------------
# Categories
# -----------------------------

class CategoryUpdate(PartialUpdate):
    clearable = frozenset({"parent_id", "image_url"})

    name: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    parent_id: Optional[str] = None
    image_url: Optional[HttpUrl] = None
    status: Optional[Lifecycle] = None


# -----------------------------
# Auth & users
# -----------------------------

class RegisterInput(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    phone_number: Optional[PhoneNumber] = None


class LoginInput(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class PreferencesUpdate(PartialUpdate):
    newsletter: Optional[bool] = None
    notifications: Optional[bool] = None


class ProfileUpdate(PartialUpdate):
    clearable = frozenset({"phone_number"})

    first_name: Optional[NonEmptyStr] = None
    last_name: Optional[NonEmptyStr] = None
    phone_number: Optional[PhoneNumber] = None
    preferences: Optional[PreferencesUpdate] = None


class ChangePasswordInput(CamelModel):
    new_password: str = Field(..., min_length=6)


class UserCreate(CamelModel):
    email: EmailStr
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    role: Literal["customer", "admin"] = "customer"
    password: Optional[str] = Field(None, min_length=6)
    phone_number: Optional[PhoneNumber] = None


class UserUpdate(PartialUpdate):
    clearable = frozenset({"phone_number"})

    email: Optional[EmailStr] = None
    first_name: Optional[NonEmptyStr] = None
    last_name: Optional[NonEmptyStr] = None
    role: Optional[Literal["customer", "admin"]] = None
    phone_number: Optional[PhoneNumber] = None
    status: Optional[Lifecycle] = None


# -----------------------------
# Addresses
# -----------------------------

class AddressCreate(CamelModel):
    type: AddressType
    street: NonEmptyStr
    city: NonEmptyStr
    state: NonEmptyStr
    zip_code: NonEmptyStr
    country: NonEmptyStr
    first_name: NonEmptyStr
    last_name: NonEmptyStr
    phone_number: Optional[PhoneNumber] = None
    is_default: bool = False


class AddressUpdate(PartialUpdate):
    clearable = frozenset({"phone_number"})

    type: Optional[AddressType] = None
    street: Optional[NonEmptyStr] = None
    city: Optional[NonEmptyStr] = None
    state: Optional[NonEmptyStr] = None
    zip_code: Optional[NonEmptyStr] = None
    country: Optional[NonEmptyStr] = None
    first_name: Optional[NonEmptyStr] = None
    last_name: Optional[NonEmptyStr] = None
    phone_number: Optional[PhoneNumber] = None
    is_default: Optional[bool] = None


# -----------------------------
# Cart & orders
# -----------------------------

class CartAdd(CamelModel):
    product_id: NonEmptyStr
    quantity: int = Field(..., ge=1)


class CartQuantity(CamelModel):
    product_id: NonEmptyStr
    quantity: int = Field(..., ge=0)


class CheckoutInput(CamelModel):
    shipping_address_id: NonEmptyStr
    payment_method: NonEmptyStr


class OrderItemInput(CamelModel):
    product_id: NonEmptyStr
    quantity: int = Field(..., ge=1)


class OrderCreate(CamelModel):
    items: List[OrderItemInput] = Field(..., min_length=1)
    shipping_address_id: NonEmptyStr
    payment_method: NonEmptyStr


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class BulkOrderStatusUpdate(CamelModel):
    order_ids: List[str] = Field(..., min_length=1)
    status: OrderStatus
