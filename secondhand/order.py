import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session, selectinload

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import ForbiddenError, InvalidInputError, NotFoundError
from .models import Order, OrderItem, OrderStatusEnum, Product
from .responses import paginate, success_response
from .store_schema import MONEY_DIGITS, MONEY_PLACES, Money, ProductSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders")


# =====================================================
# Pydantic Schemas
# =====================================================

class OrderItemIn(BaseModel):
    # All three are checked by the service so the error reads the same
    # whichever one is missing
    product: Optional[int] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = Field(None, max_digits=MONEY_DIGITS, decimal_places=MONEY_PLACES)


class OrderAddressIn(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class PlaceOrderSchema(BaseModel):
    items: List[OrderItemIn] = Field(default_factory=list)
    addresses: List[OrderAddressIn] = Field(default_factory=list)


class OrderStatusUpdate(BaseModel):
    status: Optional[str] = None


class OrderItemSchema(BaseModel):
    product_id: int
    quantity: int
    price: Money
    product: Optional[ProductSummary] = None

    class Config:
        from_attributes = True


class OrderSchema(BaseModel):
    id: int
    user_id: int
    status: OrderStatusEnum
    total_amount: Money
    addresses: List[dict]
    items: List[OrderItemSchema]
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# =====================================================
# Service Logic
# =====================================================
#
# Status machine:
#   pending -> shipped -> delivered
#   pending | shipped -> cancelled
# Only owner cancellation enforces it; admins may set any status.

def create_order(
    db: Session,
    actor: Actor,
    items: List[OrderItemIn],
    addresses: Optional[List[OrderAddressIn]] = None,
) -> Order:
    """
    Freezes the supplied line items into a pending order.

    The price of every line comes from the caller and is stored as-is;
    the total is always recomputed here. Stock is not reserved and the
    cart is left untouched.
    """
    if not items:
        raise InvalidInputError("items are required")

    for item in items:
        if item.product is None or item.quantity is None or item.price is None:
            raise InvalidInputError("Each item requires product, quantity, price")
        if item.quantity < 1:
            raise InvalidInputError("Invalid quantity")
        if item.price < 0:
            raise InvalidInputError("Invalid price")

    product_ids = {item.product for item in items}
    found = (
        db.query(Product.id)
        .filter(Product.id.in_(product_ids), Product.is_deleted == False)  # noqa: E712
        .all()
    )
    if len(found) != len(product_ids):
        raise NotFoundError("One or more products not found")

    total = sum(
        (Decimal(item.price) * item.quantity for item in items),
        Decimal("0"),
    )
    if total >= Decimal(10) ** (MONEY_DIGITS - MONEY_PLACES):
        raise InvalidInputError("Order total too large")

    order = Order(
        user_id=actor.user_id,
        status=OrderStatusEnum.PENDING,
        total_amount=total,
        addresses=[address.model_dump() for address in (addresses or [])],
        items=[
            OrderItem(product_id=item.product, quantity=item.quantity, price=item.price)
            for item in items
        ],
    )
    db.add(order)
    db.commit()
    db.refresh(order)

    logger.info(
        "Order %s created for user %s with %d item(s), total %s",
        order.id, actor.user_id, len(items), total,
    )
    return order


def _load_order(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.id == order_id)
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")
    return order


def get_order(db: Session, actor: Actor, order_id: int) -> Order:
    # Missing -> 404, somebody else's -> 403
    order = _load_order(db, order_id)
    if not actor.is_admin and order.user_id != actor.user_id:
        raise ForbiddenError("Forbidden")
    return order


def list_my_orders(db: Session, actor: Actor):
    return (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(Order.user_id == actor.user_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def _parse_status(value) -> OrderStatusEnum:
    try:
        return OrderStatusEnum(value)
    except ValueError:
        raise InvalidInputError("Invalid status")


def list_orders(
    db: Session,
    actor: Actor,
    user: Optional[int] = None,
    order_status: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
):
    if not actor.is_admin:
        raise ForbiddenError("Forbidden")

    query = db.query(Order).options(selectinload(Order.items))
    if user is not None:
        query = query.filter(Order.user_id == user)
    if order_status:
        query = query.filter(Order.status == _parse_status(order_status))

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(query, page, limit)


def update_status(db: Session, actor: Actor, order_id: int, new_status) -> Order:
    if not actor.is_admin:
        raise ForbiddenError("Forbidden")
    new_status = _parse_status(new_status)

    order = _load_order(db, order_id)
    previous = order.status
    order.status = new_status
    db.commit()
    db.refresh(order)

    logger.info(
        "Order %s status %s -> %s by admin %s",
        order.id, previous.value, new_status.value, actor.user_id,
    )
    return order


def cancel_order(db: Session, actor: Actor, order_id: int) -> Order:
    order = _load_order(db, order_id)
    if order.user_id != actor.user_id:
        raise ForbiddenError("Forbidden")

    if order.status == OrderStatusEnum.DELIVERED:
        raise InvalidInputError("Delivered orders cannot be cancelled")

    order.status = OrderStatusEnum.CANCELLED
    db.commit()
    db.refresh(order)

    logger.info("Order %s cancelled by user %s", order.id, actor.user_id)
    return order


# =====================================================
# API Routes
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def place_order(
    data: PlaceOrderSchema,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    order = create_order(db, actor, data.items, data.addresses)
    return success_response("Order created", {"order": OrderSchema.model_validate(order)})


@router.get("/me")
def my_orders(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    orders = list_my_orders(db, actor)
    return success_response("My orders", {"orders": [OrderSchema.model_validate(o) for o in orders]})


@router.get("")
def admin_list_orders(
    user: Optional[int] = None,
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    items, total = list_orders(db, actor, user=user, order_status=status, page=page, limit=limit)
    return success_response(
        "Orders fetched",
        {
            "items": [OrderSchema.model_validate(o) for o in items],
            "page": page,
            "limit": limit,
            "total": total,
        },
    )


@router.get("/{order_id}")
def read_order(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    order = get_order(db, actor, order_id)
    return success_response("Order fetched", {"order": OrderSchema.model_validate(order)})


@router.patch("/{order_id}/status")
def change_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    order = update_status(db, actor, order_id, data.status)
    return success_response("Order status updated", {"order": OrderSchema.model_validate(order)})


@router.post("/{order_id}/cancel")
def cancel_my_order(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    order = cancel_order(db, actor, order_id)
    return success_response("Order cancelled", {"order": OrderSchema.model_validate(order)})
