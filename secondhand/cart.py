import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import InvalidInputError, NotFoundError
from .models import Cart, CartItem
from .responses import success_response
from .store import get_active_product
from .store_schema import CartItemCreate, CartItemUpdate, CartResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/carts",
)


# =====================================================
# Service Logic
# =====================================================

def _find_cart(db: Session, user_id: int):
    return (
        db.query(Cart)
        .options(joinedload(Cart.items).joinedload(CartItem.product))
        .filter(Cart.user_id == user_id)
        .first()
    )


def get_or_create_cart(db: Session, user_id: int) -> Cart:
    """
    Returns the user's cart, creating an empty one on first access.
    A concurrent first access loses on the unique owner constraint and
    reads the winner's row.
    """
    cart = _find_cart(db, user_id)
    if cart:
        return cart

    cart = Cart(user_id=user_id)
    db.add(cart)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Cart for user %s created concurrently, re-reading", user_id)
        cart = _find_cart(db, user_id)
        if cart is None:
            raise
        return cart

    db.refresh(cart)
    return cart


def _validate_quantity(quantity: int):
    if quantity < 1:
        raise InvalidInputError("Quantity must be at least 1")


def _find_item(cart: Cart, product_id: int):
    for item in cart.items:
        if item.product_id == product_id:
            return item
    return None


def add_item(db: Session, user_id: int, product_id: int, quantity: int) -> Cart:
    # Stock is checked at order time, not here
    get_active_product(db, product_id)
    _validate_quantity(quantity)

    cart = get_or_create_cart(db, user_id)
    item = _find_item(cart, product_id)
    if item:
        item.quantity += quantity
    else:
        cart.items.append(CartItem(product_id=product_id, quantity=quantity))

    db.commit()
    db.refresh(cart)
    return cart


def set_item_quantity(db: Session, user_id: int, product_id: int, quantity: int) -> Cart:
    _validate_quantity(quantity)

    cart = get_or_create_cart(db, user_id)
    item = _find_item(cart, product_id)
    if not item:
        raise NotFoundError("Item not found in cart")

    item.quantity = quantity
    db.commit()
    db.refresh(cart)
    return cart


def remove_item(db: Session, user_id: int, product_id: int) -> Cart:
    cart = get_or_create_cart(db, user_id)
    item = _find_item(cart, product_id)
    if not item:
        raise NotFoundError("Item not found in cart")

    cart.items.remove(item)
    db.commit()
    db.refresh(cart)
    return cart


def clear_cart(db: Session, user_id: int) -> Cart:
    cart = get_or_create_cart(db, user_id)
    cart.items.clear()
    db.commit()
    db.refresh(cart)
    return cart


# =====================================================
# API Routes
# =====================================================

def _cart_data(cart: Cart) -> dict:
    return {"cart": CartResponse.model_validate(cart)}


@router.get("/me")
def get_my_cart(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    cart = get_or_create_cart(db, actor.user_id)
    return success_response("Cart fetched", _cart_data(cart))


@router.post("/me/items")
def add_item_to_cart(
    data: CartItemCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    cart = add_item(db, actor.user_id, data.product, data.quantity)
    return success_response("Item added to cart", _cart_data(cart))


@router.patch("/me/items/{product_id}")
def update_cart_item(
    product_id: int,
    data: CartItemUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    cart = set_item_quantity(db, actor.user_id, product_id, data.quantity)
    return success_response("Cart item updated", _cart_data(cart))


@router.delete("/me/items/{product_id}")
def remove_cart_item(
    product_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    cart = remove_item(db, actor.user_id, product_id)
    return success_response("Item removed from cart", _cart_data(cart))


@router.delete("/me")
def clear_my_cart(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    cart = clear_cart(db, actor.user_id)
    return success_response("Cart cleared", _cart_data(cart))


@router.get("/user/{user_id}")
def get_cart_by_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    cart = get_or_create_cart(db, user_id)
    return success_response("Cart fetched", _cart_data(cart))
