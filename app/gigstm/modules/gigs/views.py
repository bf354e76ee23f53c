from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy.orm import Session

from app.gigstm.constants import PROOF_TYPES
from app.gigstm.db import db_session
from app.gigstm.lifecycle import GIG, LifecycleError
from app.gigstm.models import User
from app.gigstm.modules.applications.service import apply, get_application
from app.gigstm.rbac import require_permission, user_has_permission

from .models import Gig
from .service import (
    add_question,
    add_review,
    add_training_module,
    bookmarked_gig_ids,
    can_manage_gig,
    can_review,
    create_gig,
    gig_reviews,
    list_categories,
    parse_pay_amount,
    parse_steps,
    search_gigs,
    set_gig_status,
    toggle_bookmark,
)

bp = Blueprint("gigs", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


def _get_gig_or_404(s: Session, gig_id: int) -> Gig:
    gig = s.get(Gig, gig_id)
    if not gig:
        abort(404)
    return gig


@bp.get("/")
@require_permission("gigs.view")
def list_gigs():
    s = db_session()
    user = _current_user()
    q = (request.args.get("q") or "").strip()
    category_id = request.args.get("category", type=int)
    only_bookmarked = request.args.get("bookmarked") == "1"
    gigs = search_gigs(
        s,
        q=q,
        category_id=category_id,
        bookmarked_by=user.id if only_bookmarked else None,
    )
    return render_template(
        "gigs/list.html",
        gigs=gigs,
        categories=list_categories(s),
        bookmarked=bookmarked_gig_ids(s, user.id),
        q=q,
        category_id=category_id,
        only_bookmarked=only_bookmarked,
    )


@bp.get("/new")
@require_permission("gigs.create")
def new_gig_get():
    s = db_session()
    return render_template("gigs/new.html", categories=list_categories(s), proof_types=PROOF_TYPES)


@bp.post("/new")
@require_permission("gigs.create")
def new_gig_post():
    s = db_session()
    user = _current_user()
    try:
        steps = parse_steps(
            request.form.getlist("step_title"),
            request.form.getlist("step_description"),
            request.form.getlist("step_proof_type"),
        )
        gig = create_gig(
            s,
            user,
            title=request.form.get("title") or "",
            description=request.form.get("description") or "",
            pay_amount=parse_pay_amount(request.form.get("pay_amount")),
            category_id=request.form.get("category_id", type=int),
            location=request.form.get("location"),
            steps=steps,
        )
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("gigs.new_gig_get"))
    flash("Gig created.", "success")
    return redirect(url_for("gigs.detail", gig_id=gig.id))


@bp.get("/<int:gig_id>")
@require_permission("gigs.view")
def detail(gig_id: int):
    s = db_session()
    user = _current_user()
    gig = _get_gig_or_404(s, gig_id)
    reviews, avg_rating = gig_reviews(s, gig.id)
    application = get_application(s, gig.id, user.id)
    return render_template(
        "gigs/detail.html",
        gig=gig,
        reviews=reviews,
        avg_rating=avg_rating,
        application=application,
        bookmarked=gig.id in bookmarked_gig_ids(s, user.id),
        can_manage=can_manage_gig(user, gig),
        can_apply=user_has_permission(user, "gigs.apply") and gig.status == "active" and application is None,
        can_review=user_has_permission(user, "gigs.review") and can_review(s, user, gig),
    )


@bp.post("/<int:gig_id>/apply")
@require_permission("gigs.apply")
def apply_post(gig_id: int):
    s = db_session()
    user = _current_user()
    gig = _get_gig_or_404(s, gig_id)
    try:
        application = apply(s, gig, user)
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("gigs.detail", gig_id=gig.id))

    if application.status == "testing":
        flash("Application submitted. Take the qualification test to continue.", "success")
        return redirect(url_for("applications.test_get", application_id=application.id))
    if application.status == "training":
        flash("Application submitted. Complete the training to continue.", "success")
        return redirect(url_for("applications.training_get", application_id=application.id))
    flash("Application submitted for review.", "success")
    return redirect(url_for("applications.dashboard"))


@bp.post("/<int:gig_id>/bookmark")
@require_permission("gigs.view")
def bookmark_post(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    added = toggle_bookmark(s, _current_user(), gig)
    s.commit()
    flash("Bookmarked." if added else "Bookmark removed.", "success")
    nxt = request.form.get("next") or ""
    if nxt.startswith("/") and not nxt.startswith("//"):
        return redirect(nxt)
    return redirect(url_for("gigs.detail", gig_id=gig.id))


@bp.post("/<int:gig_id>/review")
@require_permission("gigs.review")
def review_post(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    try:
        add_review(
            s,
            _current_user(),
            gig,
            rating=request.form.get("rating", type=int) or 0,
            comment=request.form.get("comment"),
        )
        s.commit()
        flash("Thanks for your review.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("gigs.detail", gig_id=gig.id))


@bp.get("/<int:gig_id>/manage")
@require_permission("gigs.create")
def manage_get(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    if not can_manage_gig(_current_user(), gig):
        abort(403)
    return render_template("gigs/manage.html", gig=gig, next_statuses=sorted(GIG.next_statuses(gig.status)))


@bp.post("/<int:gig_id>/status")
@require_permission("gigs.create")
def status_post(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    try:
        set_gig_status(s, _current_user(), gig, (request.form.get("status") or "").strip())
        s.commit()
        flash(f"Gig is now {gig.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("gigs.manage_get", gig_id=gig.id))


@bp.post("/<int:gig_id>/questions")
@require_permission("gigs.create")
def question_post(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    try:
        add_question(
            s,
            _current_user(),
            gig,
            question=request.form.get("question") or "",
            options=request.form.getlist("option"),
            correct_index=request.form.get("correct_index", type=int, default=-1),
        )
        s.commit()
        flash("Question added.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("gigs.manage_get", gig_id=gig.id))


@bp.post("/<int:gig_id>/training-modules")
@require_permission("gigs.create")
def training_module_post(gig_id: int):
    s = db_session()
    gig = _get_gig_or_404(s, gig_id)
    try:
        add_training_module(
            s,
            _current_user(),
            gig,
            title=request.form.get("title") or "",
            content=request.form.get("content") or "",
            training_title=request.form.get("training_title"),
        )
        s.commit()
        flash("Training module added.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("gigs.manage_get", gig_id=gig.id))
