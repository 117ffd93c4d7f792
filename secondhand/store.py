import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, get_optional_actor, require_admin
from .exceptions import ConflictError, ForbiddenError, NotFoundError
from .models import Category, Product, ProductStatusEnum
from .responses import paginate, success_response
from .store_schema import (
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# =====================================================
# Service Logic
# =====================================================

def get_active_product(db: Session, product_id: int) -> Product:
    """Product lookup used by every consumer; soft-deleted rows are missing."""
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product or product.is_deleted:
        raise NotFoundError("Product not found")
    return product


def list_categories(db: Session, q: Optional[str] = None, include_deleted: bool = False):
    query = db.query(Category)
    if not include_deleted:
        query = query.filter(Category.is_deleted == False)  # noqa: E712
    if q:
        query = query.filter(Category.name.ilike(f"%{q}%"))
    return query.order_by(Category.name).all()


def get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category or category.is_deleted:
        raise NotFoundError("Category not found")
    return category


def create_category(db: Session, name: str):
    """Returns (category, restored). A soft-deleted namesake is revived."""
    name = name.strip()
    existing = db.query(Category).filter(Category.name == name).first()
    if existing and not existing.is_deleted:
        raise ConflictError("Category already exists")

    if existing:
        existing.is_deleted = False
        db.commit()
        db.refresh(existing)
        logger.info("Category %s restored", existing.id)
        return existing, True

    category = Category(name=name)
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Category already exists")
    db.refresh(category)
    return category, False


def update_category(db: Session, category_id: int, data: CategoryUpdate) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category not found")

    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(category, key, value.strip() if key == "name" else value)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Category already exists")
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise NotFoundError("Category not found")
    category.is_deleted = True
    db.commit()
    db.refresh(category)
    return category


def list_products(
    db: Session,
    actor: Optional[Actor] = None,
    q: Optional[str] = None,
    category: Optional[int] = None,
    product_status: Optional[ProductStatusEnum] = None,
    user: Optional[int] = None,
    min_price: Optional[Decimal] = None,
    max_price: Optional[Decimal] = None,
    include_deleted: bool = False,
    page: int = 1,
    limit: int = 20,
):
    query = db.query(Product)
    # Only admins may look behind the soft-delete flag
    if not (include_deleted and actor is not None and actor.is_admin):
        query = query.filter(Product.is_deleted == False)  # noqa: E712
    if q:
        pattern = f"%{q}%"
        query = query.filter(
            or_(Product.title.ilike(pattern), Product.description.ilike(pattern))
        )
    if category is not None:
        query = query.filter(Product.category_id == category)
    if product_status is not None:
        query = query.filter(Product.status == product_status)
    if user is not None:
        query = query.filter(Product.user_id == user)
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    return paginate(query, page, limit)


def create_product(db: Session, actor: Actor, data: ProductCreate) -> Product:
    get_category(db, data.category)

    product = Product(
        user_id=actor.user_id,
        category_id=data.category,
        title=data.title,
        description=data.description,
        price=data.price,
        stock_quantity=data.stock_quantity,
        status=data.status,
        details=data.details.model_dump(mode="json") if data.details else None,
        images=[image.model_dump() for image in data.images],
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product %s listed by user %s", product.id, actor.user_id)
    return product


def _owned_product(db: Session, actor: Actor, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise NotFoundError("Product not found")
    if not actor.is_admin and product.user_id != actor.user_id:
        raise ForbiddenError("Forbidden")
    return product


def update_product(db: Session, actor: Actor, product_id: int, data: ProductUpdate) -> Product:
    product = _owned_product(db, actor, product_id)

    updates = data.model_dump(exclude_unset=True, exclude_none=True)
    if "category" in updates:
        product.category_id = get_category(db, updates.pop("category")).id
    if "details" in updates:
        updates["details"] = data.details.model_dump(mode="json")
    if "images" in updates:
        updates["images"] = [image.model_dump() for image in data.images]

    for key, value in updates.items():
        setattr(product, key, value)

    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, actor: Actor, product_id: int) -> Product:
    product = _owned_product(db, actor, product_id)
    product.is_deleted = True
    db.commit()
    db.refresh(product)
    logger.info("Product %s soft-deleted by user %s", product.id, actor.user_id)
    return product


# =====================================================
# API Routes
# =====================================================

# ---------- CATEGORY ----------
@router.get("/categories")
def read_categories(
    q: Optional[str] = None,
    includeDeleted: bool = False,
    db: Session = Depends(get_db),
):
    categories = list_categories(db, q=q, include_deleted=includeDeleted)
    return success_response(
        "Categories fetched",
        {"categories": [CategoryOut.model_validate(c) for c in categories]},
    )


@router.get("/categories/{category_id}")
def read_category(category_id: int, db: Session = Depends(get_db)):
    category = get_category(db, category_id)
    return success_response("Category fetched", {"category": CategoryOut.model_validate(category)})


@router.post("/categories", status_code=status.HTTP_201_CREATED)
def add_category(
    data: CategoryCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    category, restored = create_category(db, data.name)
    message = "Category restored" if restored else "Category created"
    return success_response(message, {"category": CategoryOut.model_validate(category)})


@router.patch("/categories/{category_id}")
def edit_category(
    category_id: int,
    data: CategoryUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    category = update_category(db, category_id, data)
    return success_response("Category updated", {"category": CategoryOut.model_validate(category)})


@router.delete("/categories/{category_id}")
def remove_category(
    category_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    category = delete_category(db, category_id)
    return success_response("Category soft-deleted", {"category": CategoryOut.model_validate(category)})


# ---------- PRODUCT ----------
@router.get("/products")
def read_products(
    q: Optional[str] = None,
    category: Optional[int] = None,
    status: Optional[ProductStatusEnum] = None,
    user: Optional[int] = None,
    minPrice: Optional[Decimal] = None,
    maxPrice: Optional[Decimal] = None,
    includeDeleted: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    actor: Optional[Actor] = Depends(get_optional_actor),
):
    items, total = list_products(
        db,
        actor=actor,
        q=q,
        category=category,
        product_status=status,
        user=user,
        min_price=minPrice,
        max_price=maxPrice,
        include_deleted=includeDeleted,
        page=page,
        limit=limit,
    )
    return success_response(
        "Products fetched",
        {
            "items": [ProductOut.model_validate(p) for p in items],
            "page": page,
            "limit": limit,
            "total": total,
        },
    )


@router.get("/products/{product_id}")
def read_product(product_id: int, db: Session = Depends(get_db)):
    product = get_active_product(db, product_id)
    return success_response("Product fetched", {"product": ProductOut.model_validate(product)})


@router.post("/products", status_code=status.HTTP_201_CREATED)
def add_product(
    data: ProductCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    product = create_product(db, actor, data)
    return success_response("Product created", {"product": ProductOut.model_validate(product)})


@router.patch("/products/{product_id}")
def edit_product(
    product_id: int,
    data: ProductUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    product = update_product(db, actor, product_id, data)
    return success_response("Product updated", {"product": ProductOut.model_validate(product)})


@router.delete("/products/{product_id}")
def remove_product(
    product_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    product = delete_product(db, actor, product_id)
    return success_response("Product soft-deleted", {"product": ProductOut.model_validate(product)})
