import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from .dependencies import Actor, get_actor, get_db
from .exceptions import ForbiddenError, InvalidInputError, NotFoundError
from .models import Message, User
from .responses import success_response
from .store import get_active_product
from .store_schema import MessageCreate, MessageOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages")


# =====================================================
# Service Logic
# =====================================================

def send_message(db: Session, actor: Actor, data: MessageCreate) -> Message:
    if not data.receiver or not data.message:
        raise InvalidInputError("receiver and message are required")

    receiver = db.query(User).filter(User.id == data.receiver).first()
    if not receiver or receiver.is_deleted:
        raise NotFoundError("Receiver not found")
    if data.product is not None:
        get_active_product(db, data.product)

    msg = Message(
        sender_id=actor.user_id,
        receiver_id=receiver.id,
        product_id=data.product,
        message=data.message,
    )
    db.add(msg)
    db.commit()
    db.refresh(msg)
    return msg


def list_conversation(db: Session, actor: Actor, other_user_id: int):
    """Both directions between the actor and another user, oldest first."""
    me = actor.user_id
    return (
        db.query(Message)
        .filter(
            Message.is_deleted == False,  # noqa: E712
            or_(
                and_(Message.sender_id == me, Message.receiver_id == other_user_id),
                and_(Message.sender_id == other_user_id, Message.receiver_id == me),
            ),
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def _party_message(db: Session, actor: Actor, message_id: int, allow_deleted=False) -> Message:
    msg = db.query(Message).filter(Message.id == message_id).first()
    if not msg or (msg.is_deleted and not allow_deleted):
        raise NotFoundError("Message not found")
    if actor.user_id not in (msg.sender_id, msg.receiver_id):
        raise ForbiddenError("Forbidden")
    return msg


def set_archived(db: Session, actor: Actor, message_id: int, archived: bool) -> Message:
    # The flag is shared by both parties of the conversation
    msg = _party_message(db, actor, message_id)
    msg.archived = archived
    db.commit()
    db.refresh(msg)
    return msg


def delete_message(db: Session, actor: Actor, message_id: int) -> Message:
    msg = _party_message(db, actor, message_id, allow_deleted=True)
    msg.is_deleted = True
    db.commit()
    db.refresh(msg)
    return msg


# =====================================================
# API Routes
# =====================================================

@router.post("", status_code=status.HTTP_201_CREATED)
def post_message(
    data: MessageCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    msg = send_message(db, actor, data)
    return success_response("Message sent", {"message": MessageOut.model_validate(msg)})


@router.get("/with/{user_id}")
def conversation_with(
    user_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    messages = list_conversation(db, actor, user_id)
    return success_response("Conversation", {"messages": [MessageOut.model_validate(m) for m in messages]})


@router.patch("/{message_id}/archive")
def archive_message(
    message_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    msg = set_archived(db, actor, message_id, True)
    return success_response("Message archived", {"message": MessageOut.model_validate(msg)})


@router.patch("/{message_id}/unarchive")
def unarchive_message(
    message_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    msg = set_archived(db, actor, message_id, False)
    return success_response("Message unarchived", {"message": MessageOut.model_validate(msg)})


@router.delete("/{message_id}")
def remove_message(
    message_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    msg = delete_message(db, actor, message_id)
    return success_response("Message deleted", {"message": MessageOut.model_validate(msg)})
