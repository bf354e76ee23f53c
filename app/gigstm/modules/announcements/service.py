from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User

from .models import Announcement

PRIORITIES = ("normal", "high")


def _clean(title: str, content: str, priority: str) -> tuple[str, str, str]:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise LifecycleError("Title and content are required.")
    if priority not in PRIORITIES:
        priority = "normal"
    return title, content, priority


def active_announcements(s: Session) -> list[Announcement]:
    return (
        s.query(Announcement)
        .filter(Announcement.is_active.is_(True))
        .order_by(Announcement.priority.asc(), Announcement.created_at.desc())
        .all()
    )


def create_announcement(s: Session, user: User, *, title: str, content: str, priority: str = "normal") -> Announcement:
    title, content, priority = _clean(title, content, priority)
    a = Announcement(title=title, content=content, priority=priority, is_active=True, created_by_user_id=user.id)
    s.add(a)
    s.flush()
    record_event(s, actor=user, action="announcement.create", entity_type="Announcement", entity_id=str(a.id))
    return a


def update_announcement(s: Session, a: Announcement, user: User, *, title: str, content: str, priority: str = "normal") -> Announcement:
    a.title, a.content, a.priority = _clean(title, content, priority)
    a.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="announcement.update", entity_type="Announcement", entity_id=str(a.id))
    return a


def toggle_announcement(s: Session, a: Announcement, user: User) -> Announcement:
    a.is_active = not a.is_active
    a.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="announcement.toggle",
        entity_type="Announcement",
        entity_id=str(a.id),
        metadata={"is_active": a.is_active},
    )
    return a


def delete_announcement(s: Session, a: Announcement, user: User) -> None:
    record_event(
        s,
        actor=user,
        action="announcement.delete",
        entity_type="Announcement",
        entity_id=str(a.id),
        metadata={"title": a.title},
    )
    s.delete(a)
