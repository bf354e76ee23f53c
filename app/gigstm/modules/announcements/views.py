from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission

from .models import Announcement
from .service import (
    PRIORITIES,
    active_announcements,
    create_announcement,
    delete_announcement,
    toggle_announcement,
    update_announcement,
)

bp = Blueprint("announcements", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


@bp.get("/announcements")
@require_permission("announcements.view")
def index():
    s = db_session()
    return render_template("announcements/index.html", announcements=active_announcements(s))


@bp.get("/admin/announcements")
@require_permission("announcements.manage")
def manage():
    s = db_session()
    rows = s.query(Announcement).order_by(Announcement.created_at.desc()).all()
    return render_template("announcements/manage.html", announcements=rows, priorities=PRIORITIES)


@bp.post("/admin/announcements")
@require_permission("announcements.manage")
def create_post():
    s = db_session()
    try:
        create_announcement(
            s,
            _current_user(),
            title=request.form.get("title") or "",
            content=request.form.get("content") or "",
            priority=(request.form.get("priority") or "normal").strip(),
        )
        s.commit()
        flash("Announcement published.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("announcements.manage"))


def _get_or_404(announcement_id: int):
    s = db_session()
    a = s.get(Announcement, announcement_id)
    if not a:
        abort(404)
    return s, a


@bp.get("/admin/announcements/<int:announcement_id>/edit")
@require_permission("announcements.manage")
def edit_get(announcement_id: int):
    _, a = _get_or_404(announcement_id)
    return render_template("announcements/edit.html", announcement=a, priorities=PRIORITIES)


@bp.post("/admin/announcements/<int:announcement_id>/edit")
@require_permission("announcements.manage")
def edit_post(announcement_id: int):
    s, a = _get_or_404(announcement_id)
    try:
        update_announcement(
            s,
            a,
            _current_user(),
            title=request.form.get("title") or "",
            content=request.form.get("content") or "",
            priority=(request.form.get("priority") or "normal").strip(),
        )
        s.commit()
        flash("Announcement updated.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("announcements.edit_get", announcement_id=a.id))
    return redirect(url_for("announcements.manage"))


@bp.post("/admin/announcements/<int:announcement_id>/toggle")
@require_permission("announcements.manage")
def toggle_post(announcement_id: int):
    s, a = _get_or_404(announcement_id)
    toggle_announcement(s, a, _current_user())
    s.commit()
    flash("Announcement " + ("activated." if a.is_active else "hidden."), "success")
    return redirect(url_for("announcements.manage"))


@bp.post("/admin/announcements/<int:announcement_id>/delete")
@require_permission("announcements.manage")
def delete_post(announcement_id: int):
    s, a = _get_or_404(announcement_id)
    delete_announcement(s, a, _current_user())
    s.commit()
    flash("Announcement deleted.", "success")
    return redirect(url_for("announcements.manage"))
