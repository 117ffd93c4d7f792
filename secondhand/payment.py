import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from .models import Order, Payment, PaymentMethodEnum, PaymentStatusEnum
from .responses import paginate, success_response
from .store_schema import PaymentAdminUpdate, PaymentCreate, PaymentOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


# =====================================================
# Service Logic
# =====================================================
#
# Payments are recorded as pending. Moving them to completed/failed is
# left to the gateway callback, which reaches us through admin_update.

def _order_for(db: Session, actor: Actor, order_id: int) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order:
        raise NotFoundError("Order not found")
    if not actor.is_admin and order.user_id != actor.user_id:
        raise ForbiddenError("Forbidden")
    return order


def create_payment(
    db: Session,
    actor: Actor,
    order_id: Optional[int],
    amount: Optional[Decimal],
    method: Optional[str],
    transaction_id: Optional[str] = None,
) -> Payment:
    if order_id is None or amount is None or not method:
        raise InvalidInputError("order, amount, method are required")
    if amount < 0:
        raise InvalidInputError("Invalid amount")
    try:
        method = PaymentMethodEnum(method)
    except ValueError:
        raise InvalidInputError("Invalid payment method")

    order = _order_for(db, actor, order_id)

    payment = Payment(
        order_id=order.id,
        # Belongs to the order's owner even when an admin records it
        user_id=order.user_id,
        amount=amount,
        method=method,
        status=PaymentStatusEnum.PENDING,
        transaction_id=transaction_id or None,
    )
    db.add(payment)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Transaction ID already used")
    db.refresh(payment)

    logger.info(
        "Payment %s recorded for order %s (%s %s)",
        payment.id, order.id, method.value, amount,
    )
    return payment


def list_my_payments(db: Session, actor: Actor):
    return (
        db.query(Payment)
        .filter(Payment.user_id == actor.user_id, Payment.is_deleted == False)  # noqa: E712
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def list_order_payments(db: Session, actor: Actor, order_id: int):
    order = _order_for(db, actor, order_id)
    return (
        db.query(Payment)
        .filter(Payment.order_id == order.id, Payment.is_deleted == False)  # noqa: E712
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def list_payments(
    db: Session,
    actor: Actor,
    user: Optional[int] = None,
    order: Optional[int] = None,
    payment_status: Optional[PaymentStatusEnum] = None,
    method: Optional[PaymentMethodEnum] = None,
    page: int = 1,
    limit: int = 20,
):
    if not actor.is_admin:
        raise ForbiddenError("Forbidden")

    query = db.query(Payment)
    if user is not None:
        query = query.filter(Payment.user_id == user)
    if order is not None:
        query = query.filter(Payment.order_id == order)
    if payment_status is not None:
        query = query.filter(Payment.status == payment_status)
    if method is not None:
        query = query.filter(Payment.method == method)

    query = query.order_by(Payment.created_at.desc(), Payment.id.desc())
    return paginate(query, page, limit)


def admin_update(db: Session, actor: Actor, payment_id: int, data: PaymentAdminUpdate) -> Payment:
    if not actor.is_admin:
        raise ForbiddenError("Forbidden")

    payment = db.query(Payment).filter(Payment.id == payment_id).first()
    if not payment:
        raise NotFoundError("Payment not found")

    for key, value in data.model_dump(exclude_unset=True).items():
        if value is None and key != "transaction_id":
            continue
        setattr(payment, key, value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Transaction ID already used")
    db.refresh(payment)

    logger.info("Payment %s updated by admin %s", payment.id, actor.user_id)
    return payment


# =====================================================
# API Routes
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def record_payment(
    data: PaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    payment = create_payment(
        db, actor, data.order, data.amount, data.method, data.transaction_id
    )
    return success_response("Payment created", {"payment": PaymentOut.model_validate(payment)})


@router.get("/me")
def my_payments(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    payments = list_my_payments(db, actor)
    return success_response("My payments", {"payments": [PaymentOut.model_validate(p) for p in payments]})


@router.get("/order/{order_id}")
def payments_for_order(
    order_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    payments = list_order_payments(db, actor, order_id)
    return success_response(
        "Payments for order",
        {"payments": [PaymentOut.model_validate(p) for p in payments]},
    )


@router.get("")
def admin_list_payments(
    user: Optional[int] = None,
    order: Optional[int] = None,
    status: Optional[PaymentStatusEnum] = None,
    method: Optional[PaymentMethodEnum] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    items, total = list_payments(
        db, actor,
        user=user, order=order, payment_status=status, method=method,
        page=page, limit=limit,
    )
    return success_response(
        "Payments fetched",
        {
            "items": [PaymentOut.model_validate(p) for p in items],
            "page": page,
            "limit": limit,
            "total": total,
        },
    )


@router.patch("/{payment_id}")
def admin_update_payment(
    payment_id: int,
    data: PaymentAdminUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    payment = admin_update(db, actor, payment_id, data)
    return success_response("Payment updated", {"payment": PaymentOut.model_validate(payment)})
