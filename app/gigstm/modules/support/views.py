from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy.orm import Session

from app.gigstm.constants import TICKET_PRIORITIES
from app.gigstm.db import db_session
from app.gigstm.lifecycle import SUPPORT_TICKET, LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission, user_has_permission

from .models import SupportTicket
from .service import can_view_ticket, change_status, create_ticket, post_message, published_faqs

bp = Blueprint("support", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


def _get_ticket_or_404(s: Session, ticket_id: int) -> SupportTicket:
    ticket = s.get(SupportTicket, ticket_id)
    if not ticket or not can_view_ticket(_current_user(), ticket):
        abort(404)
    return ticket


@bp.get("/")
@require_permission("support.use")
def index():
    s = db_session()
    user = _current_user()
    is_staff = user_has_permission(user, "support.manage")
    q = s.query(SupportTicket)
    status = (request.args.get("status") or "").strip()
    if not (is_staff and request.args.get("scope") == "all"):
        q = q.filter(SupportTicket.user_id == user.id)
    if status in SUPPORT_TICKET.statuses:
        q = q.filter(SupportTicket.status == status)
    tickets = q.order_by(SupportTicket.updated_at.desc()).all()
    return render_template(
        "support/index.html",
        tickets=tickets,
        faqs=published_faqs(s),
        priorities=TICKET_PRIORITIES,
        is_staff=is_staff,
        status=status,
    )


@bp.post("/tickets")
@require_permission("support.use")
def create_post():
    s = db_session()
    try:
        ticket = create_ticket(
            s,
            _current_user(),
            subject=request.form.get("subject") or "",
            description=request.form.get("description") or "",
            priority=(request.form.get("priority") or "medium").strip(),
        )
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("support.index"))
    flash(f"Ticket #{ticket.id} opened.", "success")
    return redirect(url_for("support.ticket", ticket_id=ticket.id))


@bp.get("/tickets/<int:ticket_id>")
@require_permission("support.use")
def ticket(ticket_id: int):
    s = db_session()
    t = _get_ticket_or_404(s, ticket_id)
    user = _current_user()
    return render_template(
        "support/ticket.html",
        ticket=t,
        is_staff=user_has_permission(user, "support.manage"),
        next_statuses=sorted(SUPPORT_TICKET.next_statuses(t.status)),
    )


@bp.post("/tickets/<int:ticket_id>/messages")
@require_permission("support.use")
def message_post(ticket_id: int):
    s = db_session()
    t = _get_ticket_or_404(s, ticket_id)
    try:
        post_message(s, t, _current_user(), request.form.get("message") or "")
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("support.ticket", ticket_id=t.id))


@bp.post("/tickets/<int:ticket_id>/status")
@require_permission("support.manage")
def status_post(ticket_id: int):
    s = db_session()
    t = _get_ticket_or_404(s, ticket_id)
    try:
        change_status(s, t, (request.form.get("status") or "").strip(), _current_user())
        s.commit()
        flash(f"Ticket #{t.id} is now {t.status.replace('_', ' ')}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("support.ticket", ticket_id=t.id))
