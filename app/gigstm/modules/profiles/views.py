from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission

from .service import (
    add_experience,
    delete_experience,
    list_experiences,
    profile_stats,
    referral_summary,
    update_profile,
)

bp = Blueprint("profiles", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


@bp.get("/")
@require_permission("profile.edit")
def index():
    s = db_session()
    user = _current_user()
    return render_template(
        "profile/index.html",
        user=user,
        experiences=list_experiences(s, user.id),
        stats=profile_stats(s, user),
    )


@bp.post("/")
@require_permission("profile.edit")
def update_post():
    s = db_session()
    try:
        update_profile(s, _current_user(), request.form)
        s.commit()
        flash("Profile updated.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("profiles.index"))


@bp.post("/experiences")
@require_permission("profile.edit")
def experience_post():
    s = db_session()
    try:
        add_experience(s, _current_user(), request.form)
        s.commit()
        flash("Experience added.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("profiles.index"))


@bp.post("/experiences/<int:experience_id>/delete")
@require_permission("profile.edit")
def experience_delete_post(experience_id: int):
    s = db_session()
    try:
        delete_experience(s, _current_user(), experience_id)
        s.commit()
        flash("Experience removed.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("profiles.index"))


@bp.get("/referrals")
@require_permission("profile.edit")
def referrals():
    s = db_session()
    user = _current_user()
    link = url_for("auth.signup_get", ref=user.referral_code, _external=True) if user.referral_code else None
    return render_template("profile/referrals.html", summary=referral_summary(s, user), referral_link=link)
