import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import NotFoundError
from .models import Address
from .responses import success_response
from .store_schema import AddressCreate, AddressOut, AddressUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/addresses")


# =====================================================
# Service Logic
# =====================================================
#
# Primary exclusivity is procedural: every write that sets is_primary
# first clears the flag on all of the user's addresses. Both writes are
# flushed in the same transaction and committed together.

def _clear_primary(db: Session, user_id: int):
    db.query(Address).filter(Address.user_id == user_id).update(
        {Address.is_primary: False}, synchronize_session="fetch"
    )


def list_addresses(db: Session, user_id: int):
    return (
        db.query(Address)
        .filter(Address.user_id == user_id, Address.is_deleted == False)  # noqa: E712
        .order_by(Address.is_primary.desc(), Address.updated_at.desc(), Address.id.desc())
        .all()
    )


def create_address(db: Session, user_id: int, data: AddressCreate) -> Address:
    if data.is_primary:
        _clear_primary(db, user_id)

    address = Address(user_id=user_id, **data.model_dump())
    db.add(address)
    db.commit()
    db.refresh(address)
    return address


def _owned_address(db: Session, address_id: int, user_id: int) -> Address:
    # "Not yours" is reported as missing
    address = (
        db.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id)
        .first()
    )
    if not address or address.is_deleted:
        raise NotFoundError("Address not found")
    return address


def update_address(db: Session, address_id: int, user_id: int, data: AddressUpdate) -> Address:
    address = _owned_address(db, address_id, user_id)

    updates = data.model_dump(exclude_unset=True)
    if updates.get("is_primary") is None:
        updates.pop("is_primary", None)
    if updates.get("is_primary") is True:
        _clear_primary(db, user_id)

    for key, value in updates.items():
        setattr(address, key, value)

    db.commit()
    db.refresh(address)
    return address


def soft_delete_address(db: Session, address_id: int, user_id: int) -> Address:
    # Primary status is not handed to another address
    address = (
        db.query(Address)
        .filter(Address.id == address_id, Address.user_id == user_id)
        .first()
    )
    if not address:
        raise NotFoundError("Address not found")

    address.is_deleted = True
    db.commit()
    db.refresh(address)
    return address


def make_primary(db: Session, address_id: int, user_id: int) -> Address:
    address = _owned_address(db, address_id, user_id)

    _clear_primary(db, user_id)
    address.is_primary = True
    db.commit()
    db.refresh(address)
    logger.info("Address %s is now primary for user %s", address.id, user_id)
    return address


# =====================================================
# API Routes
# =====================================================

@router.get("/me")
def list_my_addresses(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    addresses = list_addresses(db, actor.user_id)
    return success_response(
        "Addresses fetched",
        {"addresses": [AddressOut.model_validate(a) for a in addresses]},
    )


@router.post("/me", status_code=status.HTTP_201_CREATED)
def create_my_address(
    data: AddressCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    address = create_address(db, actor.user_id, data)
    return success_response("Address created", {"address": AddressOut.model_validate(address)})


@router.patch("/me/{address_id}")
def update_my_address(
    address_id: int,
    data: AddressUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    address = update_address(db, address_id, actor.user_id, data)
    return success_response("Address updated", {"address": AddressOut.model_validate(address)})


@router.delete("/me/{address_id}")
def delete_my_address(
    address_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    address = soft_delete_address(db, address_id, actor.user_id)
    return success_response("Address soft-deleted", {"address": AddressOut.model_validate(address)})


@router.post("/me/{address_id}/make-primary")
def make_my_address_primary(
    address_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    address = make_primary(db, address_id, actor.user_id)
    return success_response("Primary address set", {"address": AddressOut.model_validate(address)})


@router.get("/user/{user_id}")
def list_addresses_by_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    addresses = list_addresses(db, user_id)
    return success_response(
        "Addresses fetched",
        {"addresses": [AddressOut.model_validate(a) for a in addresses]},
    )
