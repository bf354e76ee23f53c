from __future__ import annotations

from flask import Blueprint, abort, flash, g, jsonify, redirect, render_template, request, url_for

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission

from .models import Notification
from .service import (
    conversation_partners,
    get_own_notification,
    mark_all_read,
    open_thread,
    send_message,
    unread_message_count,
    unread_notification_count,
)

bp = Blueprint("notifications", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


# ---- Notifications ----


@bp.get("/notifications")
@require_permission("notifications.view")
def list_notifications():
    s = db_session()
    only_unread = request.args.get("unread") == "1"
    q = s.query(Notification).filter(Notification.user_id == _current_user().id)
    if only_unread:
        q = q.filter(Notification.is_read.is_(False))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(200).all()
    return render_template("notifications/list.html", notifications=rows, only_unread=only_unread)


@bp.get("/notifications/unread-count")
@require_permission("notifications.view")
def notifications_unread_count():
    s = db_session()
    return jsonify({"count": unread_notification_count(s, _current_user().id)})


@bp.post("/notifications/<int:notification_id>/read")
@require_permission("notifications.view")
def mark_read_post(notification_id: int):
    s = db_session()
    n = get_own_notification(s, _current_user(), notification_id)
    if n is None:
        abort(404)
    n.is_read = True
    s.commit()
    if n.link and n.link.startswith("/") and not n.link.startswith("//"):
        return redirect(n.link)
    return redirect(url_for("notifications.list_notifications"))


@bp.post("/notifications/read-all")
@require_permission("notifications.view")
def mark_all_read_post():
    s = db_session()
    count = mark_all_read(s, _current_user())
    s.commit()
    flash(f"Marked {count} notification(s) as read.", "success")
    return redirect(url_for("notifications.list_notifications"))


@bp.post("/notifications/<int:notification_id>/delete")
@require_permission("notifications.view")
def delete_post(notification_id: int):
    s = db_session()
    n = get_own_notification(s, _current_user(), notification_id)
    if n is None:
        abort(404)
    s.delete(n)
    s.commit()
    return redirect(url_for("notifications.list_notifications"))


# ---- Direct messages ----


@bp.get("/messages")
@require_permission("messages.use")
def conversations():
    s = db_session()
    return render_template("messages/list.html", conversations=conversation_partners(s, _current_user()))


@bp.get("/messages/unread-count")
@require_permission("messages.use")
def messages_unread_count():
    s = db_session()
    return jsonify({"count": unread_message_count(s, _current_user().id)})


@bp.post("/messages/new")
@require_permission("messages.use")
def new_conversation_post():
    s = db_session()
    email = (request.form.get("email") or "").strip().lower()
    other = s.query(User).filter(User.email == email).one_or_none()
    if other is None:
        flash("No user with that email.", "danger")
        return redirect(url_for("notifications.conversations"))
    return redirect(url_for("notifications.thread", user_id=other.id))


@bp.get("/messages/<int:user_id>")
@require_permission("messages.use")
def thread(user_id: int):
    s = db_session()
    other = s.get(User, user_id)
    if other is None:
        abort(404)
    messages = open_thread(s, _current_user(), other.id)
    s.commit()
    return render_template("messages/thread.html", other=other, messages=messages)


@bp.post("/messages/<int:user_id>")
@require_permission("messages.use")
def send_post(user_id: int):
    s = db_session()
    try:
        send_message(s, _current_user(), user_id, request.form.get("content") or "")
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("notifications.thread", user_id=user_id))
