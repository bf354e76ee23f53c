from __future__ import annotations

import logging

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from app.gigstm.constants import NOTIFICATION_TYPES, ROLE_ADMIN, ROLE_MANAGER
from app.gigstm.lifecycle import LifecycleError, PermissionDenied
from app.gigstm.models import Role, User

from .models import Message, Notification

logger = logging.getLogger(__name__)


def notify(
    s: Session,
    user_id: int,
    title: str,
    message: str,
    *,
    type: str = "info",
    link: str | None = None,
) -> Notification:
    if type not in NOTIFICATION_TYPES:
        type = "info"
    n = Notification(user_id=user_id, title=title, message=message, type=type, link=link)
    s.add(n)
    return n


def staff_user_ids(s: Session) -> list[int]:
    rows = (
        s.query(User.id)
        .join(User.roles)
        .filter(Role.key.in_((ROLE_MANAGER, ROLE_ADMIN)), User.status == "active")
        .distinct()
        .all()
    )
    return [r[0] for r in rows]


def notify_staff(s: Session, title: str, message: str, *, type: str = "info", link: str | None = None) -> int:
    ids = staff_user_ids(s)
    for uid in ids:
        notify(s, uid, title, message, type=type, link=link)
    return len(ids)


def unread_notification_count(s: Session, user_id: int) -> int:
    return (
        s.query(func.count(Notification.id))
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .scalar()
        or 0
    )


def unread_message_count(s: Session, user_id: int) -> int:
    return (
        s.query(func.count(Message.id))
        .filter(Message.receiver_id == user_id, Message.is_read.is_(False))
        .scalar()
        or 0
    )


def get_own_notification(s: Session, user: User, notification_id: int) -> Notification | None:
    n = s.get(Notification, notification_id)
    if n is None or n.user_id != user.id:
        return None
    return n


def mark_all_read(s: Session, user: User) -> int:
    result = s.execute(
        update(Notification)
        .where(Notification.user_id == user.id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def send_message(s: Session, sender: User, receiver_id: int, content: str) -> Message:
    content = (content or "").strip()
    if not content:
        raise LifecycleError("Message cannot be empty.")
    if receiver_id == sender.id:
        raise PermissionDenied("You cannot message yourself.")
    receiver = s.get(User, receiver_id)
    if receiver is None or not receiver.is_active:
        raise LifecycleError("Recipient not found.")
    msg = Message(sender_id=sender.id, receiver_id=receiver.id, content=content)
    s.add(msg)
    logger.info("Message from user %s to user %s", sender.id, receiver.id)
    return msg


def conversation_partners(s: Session, user: User) -> list[dict]:
    """One row per counterparty: last message and unread count, newest first."""
    msgs = (
        s.query(Message)
        .filter(or_(Message.sender_id == user.id, Message.receiver_id == user.id))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .all()
    )
    out: dict[int, dict] = {}
    for m in msgs:
        other = m.receiver if m.sender_id == user.id else m.sender
        row = out.get(other.id)
        if row is None:
            row = {"user": other, "last_message": m, "unread": 0}
            out[other.id] = row
        if m.receiver_id == user.id and not m.is_read:
            row["unread"] += 1
    return list(out.values())


def open_thread(s: Session, user: User, other_id: int) -> list[Message]:
    """Return the thread with ``other_id`` oldest first; received messages become read."""
    s.execute(
        update(Message)
        .where(Message.sender_id == other_id, Message.receiver_id == user.id, Message.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    return (
        s.query(Message)
        .filter(
            or_(
                (Message.sender_id == user.id) & (Message.receiver_id == other_id),
                (Message.sender_id == other_id) & (Message.receiver_id == user.id),
            )
        )
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
