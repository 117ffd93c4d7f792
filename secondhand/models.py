"""
Database models for the second-hand marketplace
-----------------------------------------------
Tech stack:
- FastAPI
- SQLAlchemy ORM
- SQLite / PostgreSQL compatible

This file contains:
- User & Profile models
- Category & Product models
- Cart & CartItem models
- Address, Wishlist & Review models
- Order, OrderItem & Payment models
- Message & Notification models

Every uniqueness rule (one cart per user, one wishlist/review row per
user and product, category names, payment transaction ids) is a database
constraint; services translate the resulting IntegrityError.

Supported backends: SQLite, PostgreSQL and MySQL/MariaDB (review upserts use
each dialect's native conflict clause).
"""

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class RoleEnum(str, Enum):
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class ProductStatusEnum(str, Enum):
    AVAILABLE = "available"
    SOLD = "sold"
    RESERVED = "reserved"


class OrderStatusEnum(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethodEnum(str, Enum):
    CARD = "card"
    UPI = "upi"
    WALLET = "wallet"
    COD = "cod"


class PaymentStatusEnum(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


# User

class User(Base):
    """
    Represents application users.
    Used for authentication & authorization.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(50), nullable=False)
    # Unique across soft-deleted rows too
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(SQLEnum(RoleEnum), default=RoleEnum.BUYER, nullable=False)

    # email / otp verification
    is_verified = Column(Boolean, default=False, nullable=False)
    otp_code = Column(String(6), nullable=True)
    otp_expires_at = Column(DateTime, nullable=True)

    # Bumped on logout; tokens carrying an older value are rejected
    token_version = Column(Integer, default=0, nullable=False)

    profile_picture = Column(String, default="", nullable=False)
    dark_mode = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    profile = relationship("Profile", back_populates="user", uselist=False)

    def __str__(self):
        return self.email


# Profile

class Profile(Base):
    """
    Public profile linked one-to-one to a User.
    """

    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    full_name = Column(String(100), default="", nullable=False)
    bio = Column(String(500), default="", nullable=False)
    profile_image = Column(String, default="", nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    user = relationship("User", back_populates="profile")


# Category

class Category(Base):
    """
    Product categories (e.g. Furniture, Electronics).
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    products = relationship("Product", back_populates="category")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __str__(self):
        return self.name


# Product

class Product(Base):
    """
    A listing owned by a seller.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(
        Integer,
        ForeignKey("categories.id"),
        nullable=False,
        index=True
    )

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Price stored as Decimal for accuracy
    price = Column(Numeric(12, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)

    status = Column(
        SQLEnum(ProductStatusEnum),
        default=ProductStatusEnum.AVAILABLE,
        nullable=False,
        index=True
    )

    # condition, brand, dimensions, ...
    details = Column(JSON, nullable=True)
    # ordered list of {url, is_primary, position}
    images = Column(JSON, nullable=False, default=list)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    owner = relationship("User")
    category = relationship("Category", back_populates="products")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __str__(self):
        return self.title


# Cart

class Cart(Base):
    """
    Shopping cart, exactly one per user.
    """

    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id"
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __str__(self):
        return str(self.id)


# CartItem

class CartItem(Base):
    """
    Product entry inside a cart. Holds quantity only; price is read at
    order time.
    """

    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", name="uq_cart_items_cart_product"),
    )

    id = Column(Integer, primary_key=True, index=True)

    cart_id = Column(
        Integer,
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id = Column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False
    )

    quantity = Column(Integer, nullable=False)

    product = relationship("Product")
    cart = relationship("Cart", back_populates="items")


# Address

class Address(Base):
    """
    Shipping address. At most one live address per user is primary.
    """

    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    street = Column(String, nullable=True)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True)

    is_primary = Column(Boolean, default=False, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )


# Wishlist

class Wishlist(Base):
    __tablename__ = "wishlists"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_wishlists_user_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    product = relationship("Product")


# Review

class Review(Base):
    """
    One rating per (user, product), edited in place by upsert.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_reviews_user_product"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User")
    product = relationship("Product")


# Order

class Order(Base):
    """
    Represents a placed order.
    Items and shipping addresses are snapshots taken at creation.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Server-computed sum of item price * quantity
    total_amount = Column(Numeric(12, 2), nullable=False)

    status = Column(
        SQLEnum(OrderStatusEnum),
        default=OrderStatusEnum.PENDING,
        nullable=False,
        index=True
    )

    # Value copies of {street, city, state, postal_code, country}
    addresses = Column(JSON, nullable=False, default=list)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    def __str__(self):
        return f"Order No {self.id}"


class OrderItem(Base):
    """
    Individual product entry inside an order.
    Stores snapshot price for order history.
    """

    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)

    order_id = Column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)

    quantity = Column(Integer, nullable=False)

    # Snapshot price at time of order
    price = Column(Numeric(12, 2), nullable=False)

    product = relationship("Product")
    order = relationship("Order", back_populates="items")


# Payment

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    method = Column(SQLEnum(PaymentMethodEnum), nullable=False)
    status = Column(
        SQLEnum(PaymentStatusEnum),
        default=PaymentStatusEnum.PENDING,
        nullable=False,
        index=True
    )

    # NULLs do not collide, so the constraint only binds supplied ids
    transaction_id = Column(String, unique=True, nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    order = relationship("Order")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )


# Message

class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    receiver_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True)

    message = Column(Text, nullable=False)

    # Shared by both parties
    archived = Column(Boolean, default=False, nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


# Notification

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # e.g. order, message, system
    type = Column(String(50), nullable=False)
    content = Column(Text, nullable=False)

    is_read = Column(Boolean, default=False, nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
