import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.dialects.mysql import insert as mysql_insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import InvalidInputError, NotFoundError
from .models import Review
from .responses import success_response
from .store import get_active_product
from .store_schema import ReviewCreate, ReviewOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews")

_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}
_DUPLICATE_KEY_DIALECTS = ("mysql", "mariadb")


# =====================================================
# Service Logic
# =====================================================

def _upsert_statement(dialect: str, values: dict):
    """INSERT ... ON CONFLICT / ON DUPLICATE KEY UPDATE keyed by (user, product)."""
    if dialect in _DUPLICATE_KEY_DIALECTS:
        stmt = mysql_insert(Review).values(**values)
        return stmt.on_duplicate_key_update(
            rating=stmt.inserted.rating,
            comment=stmt.inserted.comment,
            is_deleted=False,
        )

    if dialect not in _CONFLICT_INSERTS:
        raise NotImplementedError(f"Review upsert is not supported on {dialect}")

    stmt = _CONFLICT_INSERTS[dialect](Review).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=["user_id", "product_id"],
        set_={
            "rating": stmt.excluded.rating,
            "comment": stmt.excluded.comment,
            "is_deleted": False,
        },
    )


def upsert_review(
    db: Session,
    user_id: int,
    product_id: int,
    rating: int,
    comment: Optional[str] = None,
) -> Review:
    """
    Creates or replaces the user's review of a product in one statement
    keyed by (user, product). Re-reviewing also revives a deleted review.
    """
    if rating < 1 or rating > 5:
        raise InvalidInputError("rating must be between 1 and 5")
    get_active_product(db, product_id)

    db.execute(
        _upsert_statement(
            db.get_bind().dialect.name,
            {
                "user_id": user_id,
                "product_id": product_id,
                "rating": rating,
                "comment": comment,
                "is_deleted": False,
            },
        )
    )
    db.commit()

    return (
        db.query(Review)
        .filter(Review.user_id == user_id, Review.product_id == product_id)
        .one()
    )


def list_product_reviews(db: Session, product_id: int):
    return (
        db.query(Review)
        .filter(Review.product_id == product_id, Review.is_deleted == False)  # noqa: E712
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def list_user_reviews(db: Session, user_id: int):
    return (
        db.query(Review)
        .filter(Review.user_id == user_id, Review.is_deleted == False)  # noqa: E712
        .order_by(Review.created_at.desc(), Review.id.desc())
        .all()
    )


def delete_review(db: Session, user_id: int, product_id: int) -> Review:
    review = (
        db.query(Review)
        .filter(Review.user_id == user_id, Review.product_id == product_id)
        .first()
    )
    if not review:
        raise NotFoundError("Review not found")

    review.is_deleted = True
    db.commit()
    db.refresh(review)
    return review


def admin_delete_review(db: Session, review_id: int) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise NotFoundError("Review not found")

    review.is_deleted = True
    db.commit()
    db.refresh(review)
    logger.info("Review %s removed by moderation", review.id)
    return review


# =====================================================
# API Routes
# =====================================================

@router.get("/product/{product_id}")
def list_reviews_for_product(product_id: int, db: Session = Depends(get_db)):
    reviews = list_product_reviews(db, product_id)
    return success_response("Reviews", {"reviews": [ReviewOut.model_validate(r) for r in reviews]})


@router.get("/me")
def list_my_reviews(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    reviews = list_user_reviews(db, actor.user_id)
    return success_response("My reviews", {"reviews": [ReviewOut.model_validate(r) for r in reviews]})


@router.post("", status_code=status.HTTP_201_CREATED)
def upsert_my_review(
    data: ReviewCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    review = upsert_review(db, actor.user_id, data.product, data.rating, data.comment)
    return success_response("Review saved", {"review": ReviewOut.model_validate(review)})


@router.delete("/admin/{review_id}")
def delete_any_review(
    review_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    review = admin_delete_review(db, review_id)
    return success_response("Review deleted", {"review": ReviewOut.model_validate(review)})


@router.delete("/{product_id}")
def delete_my_review(
    product_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    review = delete_review(db, actor.user_id, product_id)
    return success_response("Review deleted", {"review": ReviewOut.model_validate(review)})
