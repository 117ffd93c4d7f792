import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db
from .exceptions import ConflictError, NotFoundError
from .models import Wishlist
from .responses import success_response
from .store import get_active_product
from .store_schema import WishlistCreate, WishlistOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wishlists")


# =====================================================
# Service Logic
# =====================================================

def add_to_wishlist(db: Session, user_id: int, product_id: int) -> Wishlist:
    """Revive-or-create; never produces a second row for (user, product)."""
    get_active_product(db, product_id)

    entry = (
        db.query(Wishlist)
        .filter(Wishlist.user_id == user_id, Wishlist.product_id == product_id)
        .first()
    )
    if entry:
        if entry.is_deleted:
            entry.is_deleted = False
            db.commit()
            db.refresh(entry)
        return entry

    entry = Wishlist(user_id=user_id, product_id=product_id)
    db.add(entry)
    try:
        db.commit()
    except IntegrityError:
        # concurrent first insert for the same pair
        db.rollback()
        raise ConflictError("Already in wishlist")
    db.refresh(entry)
    return entry


def list_wishlist(db: Session, user_id: int):
    return (
        db.query(Wishlist)
        .filter(Wishlist.user_id == user_id, Wishlist.is_deleted == False)  # noqa: E712
        .order_by(Wishlist.created_at.desc(), Wishlist.id.desc())
        .all()
    )


def remove_from_wishlist(db: Session, user_id: int, product_id: int) -> Wishlist:
    entry = (
        db.query(Wishlist)
        .filter(
            Wishlist.user_id == user_id,
            Wishlist.product_id == product_id,
            Wishlist.is_deleted == False,  # noqa: E712
        )
        .first()
    )
    if not entry:
        raise NotFoundError("Item not found in wishlist")

    entry.is_deleted = True
    db.commit()
    db.refresh(entry)
    return entry


# =====================================================
# API Routes
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def add_my_wishlist_item(
    data: WishlistCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    entry = add_to_wishlist(db, actor.user_id, data.product)
    return success_response("Added to wishlist", {"wishlist": WishlistOut.model_validate(entry)})


@router.get("/me")
def list_my_wishlist(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    items = list_wishlist(db, actor.user_id)
    return success_response("My wishlist", {"items": [WishlistOut.model_validate(w) for w in items]})


@router.delete("/{product_id}")
def remove_my_wishlist_item(
    product_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    entry = remove_from_wishlist(db, actor.user_id, product_id)
    return success_response("Removed from wishlist", {"wishlist": WishlistOut.model_validate(entry)})
