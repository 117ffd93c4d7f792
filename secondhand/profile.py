from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import ConflictError, NotFoundError
from .models import Profile
from .responses import success_response
from .schemas import ProfileCreate, ProfileOut, ProfileUpdate

router = APIRouter(prefix="/profiles", tags=["profiles"])


def create_profile(db: Session, user_id: int, data: ProfileCreate) -> Profile:
    if db.query(Profile).filter(Profile.user_id == user_id).first():
        raise ConflictError("Profile already exists")

    profile = Profile(user_id=user_id, **data.model_dump())
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Profile already exists")
    db.refresh(profile)
    return profile


def get_profile(db: Session, user_id: int) -> Profile:
    profile = (
        db.query(Profile)
        .filter(Profile.user_id == user_id, Profile.is_deleted == False)  # noqa: E712
        .first()
    )
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def update_profile(db: Session, user_id: int, data: ProfileUpdate) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        raise NotFoundError("Profile not found")

    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile


def delete_profile(db: Session, user_id: int) -> Profile:
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()
    if not profile:
        raise NotFoundError("Profile not found")

    profile.is_deleted = True
    db.commit()
    db.refresh(profile)
    return profile


@router.post("/me", status_code=status.HTTP_201_CREATED)
def create_my_profile(
    data: ProfileCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    profile = create_profile(db, actor.user_id, data)
    return success_response("Profile created", {"profile": ProfileOut.model_validate(profile)})


@router.get("/me")
def read_my_profile(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    profile = get_profile(db, actor.user_id)
    return success_response("My profile", {"profile": ProfileOut.model_validate(profile)})


@router.patch("/me")
def update_my_profile(
    data: ProfileUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    profile = update_profile(db, actor.user_id, data)
    return success_response("Profile updated", {"profile": ProfileOut.model_validate(profile)})


@router.delete("/me")
def delete_my_profile(
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    profile = delete_profile(db, actor.user_id)
    return success_response("Profile soft-deleted", {"profile": ProfileOut.model_validate(profile)})


@router.get("/{user_id}")
def read_profile_by_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    profile = get_profile(db, user_id)
    return success_response("Profile fetched", {"profile": ProfileOut.model_validate(profile)})
