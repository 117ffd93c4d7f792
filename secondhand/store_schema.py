from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, PlainSerializer

from .models import (
    PaymentMethodEnum,
    PaymentStatusEnum,
    ProductStatusEnum,
)

# Money goes out as a JSON number; it is stored as Numeric(12, 2)
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
MONEY_DIGITS = 12
MONEY_PLACES = 2

# ---------- CATEGORY ----------

class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1)


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    is_deleted: Optional[bool] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    is_deleted: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---------- PRODUCT ----------

class ConditionEnum(str, Enum):
    NEW = "new"
    USED = "used"
    REFURBISHED = "refurbished"


class Dimensions(BaseModel):
    length_cm: Optional[float] = None
    width_cm: Optional[float] = None
    height_cm: Optional[float] = None


class ProductDetails(BaseModel):
    condition: ConditionEnum
    year_of_manufacture: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    dimensions: Optional[Dimensions] = None
    weight_kg: Optional[float] = None
    material: Optional[str] = None
    color: Optional[str] = None
    original_packaging: bool = False
    manual_included: bool = False
    working_condition_description: Optional[str] = None


class ProductImage(BaseModel):
    url: str = Field(..., min_length=1)
    is_primary: bool = False
    position: int = 0


class ProductCreate(BaseModel):
    category: int
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    stock_quantity: int = Field(..., ge=0)
    status: ProductStatusEnum = ProductStatusEnum.AVAILABLE
    details: Optional[ProductDetails] = None
    images: List[ProductImage] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    category: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    stock_quantity: Optional[int] = Field(None, ge=0)
    status: Optional[ProductStatusEnum] = None
    details: Optional[ProductDetails] = None
    images: Optional[List[ProductImage]] = None
    is_deleted: Optional[bool] = None


class ProductOut(BaseModel):
    id: int
    user_id: int
    category_id: int
    title: str
    description: Optional[str] = None
    price: Money
    stock_quantity: int
    status: ProductStatusEnum
    details: Optional[dict] = None
    images: List[dict] = Field(default_factory=list)
    is_deleted: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProductSummary(BaseModel):
    id: int
    title: str
    price: Money
    images: List[dict] = Field(default_factory=list)
    status: ProductStatusEnum
    is_deleted: bool

    class Config:
        from_attributes = True


# =========================
# Cart Schemas
# =========================

class CartItemCreate(BaseModel):
    product: int
    quantity: int


class CartItemUpdate(BaseModel):
    quantity: int


class CartItemResponse(BaseModel):
    product_id: int
    quantity: int
    product: Optional[ProductSummary] = None

    class Config:
        from_attributes = True


class CartResponse(BaseModel):
    id: int
    user_id: int
    items: List[CartItemResponse]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =========================
# Address Schemas
# =========================

class AddressCreate(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: bool = False


class AddressUpdate(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: Optional[bool] = None


class AddressOut(BaseModel):
    id: int
    user_id: int
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    is_primary: bool
    is_deleted: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =========================
# Wishlist & Review Schemas
# =========================

class WishlistCreate(BaseModel):
    product: int


class WishlistOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    is_deleted: bool
    created_at: Optional[datetime] = None
    product: Optional[ProductSummary] = None

    class Config:
        from_attributes = True


class ReviewCreate(BaseModel):
    product: int
    rating: int
    comment: Optional[str] = None


class ReviewOut(BaseModel):
    id: int
    user_id: int
    product_id: int
    rating: int
    comment: Optional[str] = None
    is_deleted: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =========================
# Payment Schemas
# =========================

class PaymentCreate(BaseModel):
    order: Optional[int] = None
    amount: Optional[Decimal] = Field(None, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    method: Optional[str] = None
    transaction_id: Optional[str] = None


class PaymentAdminUpdate(BaseModel):
    status: Optional[PaymentStatusEnum] = None
    transaction_id: Optional[str] = None
    amount: Optional[Decimal] = Field(None, ge=0, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)
    method: Optional[PaymentMethodEnum] = None
    is_deleted: Optional[bool] = None


class PaymentOut(BaseModel):
    id: int
    order_id: int
    user_id: int
    amount: Money
    method: PaymentMethodEnum
    status: PaymentStatusEnum
    transaction_id: Optional[str] = None
    is_deleted: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =========================
# Message & Notification Schemas
# =========================

class MessageCreate(BaseModel):
    receiver: Optional[int] = None
    product: Optional[int] = None
    message: Optional[str] = None


class MessageOut(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    product_id: Optional[int] = None
    message: str
    archived: bool
    is_deleted: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class NotificationCreate(BaseModel):
    user: Optional[int] = None
    type: Optional[str] = None
    content: Optional[str] = None


class NotificationBulkCreate(BaseModel):
    users: List[int] = Field(default_factory=list)
    type: Optional[str] = None
    content: Optional[str] = None


class NotificationOut(BaseModel):
    id: int
    user_id: int
    type: str
    content: str
    is_read: bool
    is_deleted: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
