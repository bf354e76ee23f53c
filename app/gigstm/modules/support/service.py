from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import TICKET_PRIORITIES
from app.gigstm.lifecycle import SUPPORT_TICKET, LifecycleError, PermissionDenied, transition
from app.gigstm.models import User
from app.gigstm.modules.notifications.service import notify, notify_staff
from app.gigstm.rbac import user_has_permission

from .models import FaqArticle, SupportTicket, TicketMessage


def can_view_ticket(user: User, ticket: SupportTicket) -> bool:
    return ticket.user_id == user.id or user_has_permission(user, "support.manage")


def create_ticket(s: Session, user: User, *, subject: str, description: str, priority: str = "medium") -> SupportTicket:
    subject = (subject or "").strip()
    description = (description or "").strip()
    if not subject or not description:
        raise LifecycleError("Subject and description are required.")
    if priority not in TICKET_PRIORITIES:
        priority = "medium"
    ticket = SupportTicket(
        user_id=user.id,
        subject=subject,
        description=description,
        priority=priority,
        status=SUPPORT_TICKET.initial,
    )
    s.add(ticket)
    s.flush()
    record_event(s, actor=user, action="support.ticket_create", entity_type="SupportTicket", entity_id=str(ticket.id), metadata={"priority": priority})
    notify_staff(s, "New support ticket", f"#{ticket.id}: {subject}", link=f"/support/tickets/{ticket.id}")
    return ticket


def post_message(s: Session, ticket: SupportTicket, sender: User, message: str) -> TicketMessage:
    message = (message or "").strip()
    if not message:
        raise LifecycleError("Message cannot be empty.")
    if not can_view_ticket(sender, ticket):
        raise PermissionDenied("You cannot reply to this ticket.")

    is_owner = ticket.user_id == sender.id
    # A reply from the requester reopens a finished ticket.
    if is_owner and ticket.status in ("resolved", "closed"):
        transition(s, ticket, SUPPORT_TICKET, "open", updated_at=datetime.utcnow())
    else:
        ticket.updated_at = datetime.utcnow()

    msg = TicketMessage(sender_id=sender.id, message=message)
    ticket.messages.append(msg)
    if not is_owner:
        notify(s, ticket.user_id, "Support replied", f"New reply on ticket #{ticket.id}.", link=f"/support/tickets/{ticket.id}")
    return msg


def change_status(s: Session, ticket: SupportTicket, new_status: str, user: User) -> SupportTicket:
    if not user_has_permission(user, "support.manage"):
        raise PermissionDenied("Only support staff can change ticket status.")
    old = transition(s, ticket, SUPPORT_TICKET, new_status, updated_at=datetime.utcnow())
    notify(
        s,
        ticket.user_id,
        "Ticket updated",
        f"Ticket #{ticket.id} is now {new_status.replace('_', ' ')}.",
        link=f"/support/tickets/{ticket.id}",
    )
    record_event(
        s,
        actor=user,
        action="support.ticket_status",
        entity_type="SupportTicket",
        entity_id=str(ticket.id),
        metadata={"from": old, "to": new_status},
    )
    return ticket


def published_faqs(s: Session) -> list[FaqArticle]:
    return (
        s.query(FaqArticle)
        .filter(FaqArticle.is_published.is_(True))
        .order_by(FaqArticle.sort_order.asc(), FaqArticle.id.asc())
        .all()
    )
