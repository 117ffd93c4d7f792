import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .dependencies import Actor, get_current_user, get_db, require_admin
from .email_utils import send_otp_email
from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    NotFoundError,
    UnauthorizedError,
)
from .models import RoleEnum, User
from .otp_utils import generate_otp, otp_expiry
from .responses import success_response
from .schemas import (
    ForgotPasswordRequest,
    OTPVerify,
    ResetPasswordOTP,
    UserAdminOut,
    UserAdminUpdate,
    UserCreate,
    UserLogin,
    UserOut,
    UserSelfUpdate,
)
from .security import create_access_token, hash_password, verify_password

logger = logging.getLogger(__name__)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
users_router = APIRouter(prefix="/users", tags=["users"])


# =====================================================
# Service Logic
# =====================================================

def register_user(db: Session, user_in: UserCreate) -> User:
    email = user_in.email.lower()
    # soft-deleted accounts keep their email
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already registered")

    user = User(
        name=user_in.name,
        email=email,
        hashed_password=hash_password(user_in.password),
        role=user_in.role,
        otp_code=generate_otp(),
        otp_expires_at=otp_expiry(),
        is_verified=False,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Email already registered")
    db.refresh(user)

    logger.info("User %s registered as %s", user.id, user.role.value)
    return user


def _user_by_email(db: Session, email: str) -> User:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or user.is_deleted:
        raise NotFoundError("User not found")
    return user


def _check_otp(user: User, otp: str):
    if not user.otp_code or not user.otp_expires_at:
        raise InvalidInputError("OTP not requested")
    if user.otp_code != otp:
        raise InvalidInputError("Invalid OTP")
    if user.otp_expires_at < datetime.utcnow():
        raise InvalidInputError("OTP expired")


def verify_otp(db: Session, email: str, otp: str) -> bool:
    """Returns False when the account was already verified."""
    user = _user_by_email(db, email)
    if user.is_verified:
        return False

    _check_otp(user, otp)

    user.is_verified = True
    user.otp_code = None
    user.otp_expires_at = None
    db.commit()

    logger.info("User %s verified", user.id)
    return True


def login(db: Session, email: str, password: str):
    user = db.query(User).filter(User.email == email.lower()).first()

    if not user or user.is_deleted or not verify_password(password, user.hashed_password):
        raise UnauthorizedError("Invalid email or password")

    if not user.is_verified:
        raise ForbiddenError("Account not verified. Please verify OTP first.")

    token = create_access_token(
        data={
            "sub": user.email,
            "user_id": user.id,
            "role": user.role.value,
            "token_version": user.token_version,
        }
    )
    return user, token


def logout(db: Session, user: User):
    user.token_version += 1
    db.commit()


def start_password_reset(db: Session, email: str) -> User:
    user = _user_by_email(db, email)
    user.otp_code = generate_otp()
    user.otp_expires_at = otp_expiry()
    db.commit()
    db.refresh(user)
    return user


def reset_password(db: Session, data: ResetPasswordOTP):
    user = _user_by_email(db, data.email)
    _check_otp(user, data.otp)

    user.hashed_password = hash_password(data.new_password)
    user.otp_code = None
    user.otp_expires_at = None
    # existing sessions die with the old password
    user.token_version += 1
    db.commit()


def list_users(
    db: Session,
    role: Optional[RoleEnum] = None,
    q: Optional[str] = None,
    include_deleted: bool = False,
):
    query = db.query(User)
    if role is not None:
        query = query.filter(User.role == role)
    if not include_deleted:
        query = query.filter(User.is_deleted == False)  # noqa: E712
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
    return query.order_by(User.id).all()


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return user


def update_user(db: Session, user: User, updates: dict) -> User:
    for key, value in updates.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


# =====================================================
# Auth Routes
# =====================================================

@auth_router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    user_in: UserCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    user = register_user(db, user_in)
    background_tasks.add_task(send_otp_email, user.email, user.name, user.otp_code)
    return success_response("OTP sent to your email", {"user": UserOut.model_validate(user)})


@auth_router.put("/verify-otp")
def verify_account(data: OTPVerify, db: Session = Depends(get_db)):
    if not verify_otp(db, data.email, data.otp):
        return success_response("Account already verified")
    return success_response("Account verified successfully")


@auth_router.post("/login")
def login_user(user_in: UserLogin, db: Session = Depends(get_db)):
    user, token = login(db, user_in.email, user_in.password)
    return success_response(
        "Login successful",
        {
            "access_token": token,
            "token_type": "bearer",
            "user": UserOut.model_validate(user),
        },
    )


@auth_router.post("/logout")
def logout_user(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logout(db, current_user)
    return success_response("Logout successful")


@auth_router.post("/forgot-password")
def forgot_password(
    data: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    user = start_password_reset(db, data.email)
    background_tasks.add_task(
        send_otp_email,
        user.email,
        user.name,
        user.otp_code,
        "password reset",
    )
    return success_response("OTP sent to your email for password reset")


@auth_router.post("/reset-password")
def reset_password_with_otp(data: ResetPasswordOTP, db: Session = Depends(get_db)):
    reset_password(db, data)
    return success_response("Password reset successfully")


# =====================================================
# User Routes
# =====================================================

@users_router.get("/me/current")
def read_me(current_user: User = Depends(get_current_user)):
    return success_response("Current user", {"user": UserOut.model_validate(current_user)})


@users_router.patch("/me/current")
def update_me(
    data: UserSelfUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = update_user(db, current_user, data.model_dump(exclude_unset=True, exclude_none=True))
    return success_response("Profile updated", {"user": UserOut.model_validate(user)})


@users_router.get("")
def read_users(
    role: Optional[RoleEnum] = None,
    q: Optional[str] = None,
    includeDeleted: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    users = list_users(db, role=role, q=q, include_deleted=includeDeleted)
    return success_response("Users fetched", {"users": [UserAdminOut.model_validate(u) for u in users]})


@users_router.get("/{user_id}")
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    user = get_user(db, user_id)
    return success_response("User fetched", {"user": UserAdminOut.model_validate(user)})


@users_router.patch("/{user_id}")
def update_user_by_id(
    user_id: int,
    data: UserAdminUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    user = update_user(db, get_user(db, user_id), data.model_dump(exclude_unset=True, exclude_none=True))
    logger.info("User %s updated by admin %s", user.id, actor.user_id)
    return success_response("User updated", {"user": UserAdminOut.model_validate(user)})


@users_router.delete("/{user_id}")
def delete_user_by_id(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    user = update_user(db, get_user(db, user_id), {"is_deleted": True})
    logger.info("User %s soft-deleted by admin %s", user.id, actor.user_id)
    return success_response("User soft-deleted", {"user": UserAdminOut.model_validate(user)})
