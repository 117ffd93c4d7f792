import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db, require_admin
from .exceptions import InvalidInputError, NotFoundError
from .models import Notification, User
from .responses import success_response
from .store_schema import NotificationBulkCreate, NotificationCreate, NotificationOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications")


# =====================================================
# Service Logic
# =====================================================

def _ensure_users_exist(db: Session, user_ids: List[int]):
    wanted = set(user_ids)
    found = {
        row.id
        for row in db.query(User.id)
        .filter(User.id.in_(wanted), User.is_deleted == False)  # noqa: E712
        .all()
    }
    if found != wanted:
        raise NotFoundError("User not found")


def list_notifications(db: Session, user_id: int, only_unread: bool = False):
    query = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.is_deleted == False,  # noqa: E712
    )
    if only_unread:
        query = query.filter(Notification.is_read == False)  # noqa: E712
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def _owned_notification(db: Session, user_id: int, notification_id: int) -> Notification:
    notif = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notif:
        raise NotFoundError("Notification not found")
    return notif


def set_read(db: Session, user_id: int, notification_id: int, is_read: bool) -> Notification:
    notif = _owned_notification(db, user_id, notification_id)
    notif.is_read = is_read
    db.commit()
    db.refresh(notif)
    return notif


def delete_notification(db: Session, user_id: int, notification_id: int) -> Notification:
    notif = _owned_notification(db, user_id, notification_id)
    notif.is_deleted = True
    db.commit()
    db.refresh(notif)
    return notif


def create_notification(db: Session, user_id, type_, content) -> Notification:
    if not user_id or not type_ or not content:
        raise InvalidInputError("user, type, content are required")
    _ensure_users_exist(db, [user_id])

    notif = Notification(user_id=user_id, type=type_, content=content)
    db.add(notif)
    db.commit()
    db.refresh(notif)
    return notif


def create_bulk(db: Session, user_ids: List[int], type_, content) -> int:
    """One independent row per user; returns how many were written."""
    if not user_ids or not type_ or not content:
        raise InvalidInputError("users[], type, content are required")
    _ensure_users_exist(db, user_ids)

    rows = [Notification(user_id=uid, type=type_, content=content) for uid in user_ids]
    db.add_all(rows)
    db.commit()

    logger.info("Bulk notification '%s' sent to %d user(s)", type_, len(rows))
    return len(rows)


# =====================================================
# API Routes
# =====================================================

@router.get("/me")
def my_notifications(
    onlyUnread: bool = False,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notifications = list_notifications(db, actor.user_id, only_unread=onlyUnread)
    return success_response(
        "Notifications",
        {"notifications": [NotificationOut.model_validate(n) for n in notifications]},
    )


@router.patch("/{notification_id}/read")
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notif = set_read(db, actor.user_id, notification_id, True)
    return success_response("Marked read", {"notification": NotificationOut.model_validate(notif)})


@router.patch("/{notification_id}/unread")
def mark_unread(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notif = set_read(db, actor.user_id, notification_id, False)
    return success_response("Marked unread", {"notification": NotificationOut.model_validate(notif)})


@router.delete("/{notification_id}")
def remove_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    notif = delete_notification(db, actor.user_id, notification_id)
    return success_response("Notification deleted", {"notification": NotificationOut.model_validate(notif)})


@router.post("", status_code=status.HTTP_201_CREATED)
def admin_create_notification(
    data: NotificationCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    notif = create_notification(db, data.user, data.type, data.content)
    return success_response("Notification created", {"notification": NotificationOut.model_validate(notif)})


@router.post("/bulk", status_code=status.HTTP_201_CREATED)
def admin_create_bulk(
    data: NotificationBulkCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(require_admin),
):
    count = create_bulk(db, data.users, data.type, data.content)
    return success_response("Notifications created", {"count": count})
