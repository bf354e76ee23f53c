"""
Manager triage: pending applications, pending claims, open disputes and the
manager's own gigs. Every action delegates to the lifecycle services.
"""
from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.modules.applications.models import Application, WorkOrder
from app.gigstm.modules.applications.service import cancel_work_order, review_application
from app.gigstm.modules.claims.models import Claim
from app.gigstm.modules.claims.service import pending_claims, review_claim
from app.gigstm.modules.disputes.service import queue as dispute_queue
from app.gigstm.modules.gigs.models import Gig
from app.gigstm.rbac import require_permission

bp = Blueprint("manager", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


@bp.get("/")
@require_permission("manager.view")
def dashboard():
    s = db_session()
    user = _current_user()
    applications = (
        s.query(Application)
        .filter(Application.status == "pending")
        .order_by(Application.created_at.asc(), Application.id.asc())
        .all()
    )
    work_orders = (
        s.query(WorkOrder)
        .filter(WorkOrder.status == "active")
        .order_by(WorkOrder.due_date.asc())
        .all()
    )
    own_gigs = s.query(Gig).filter(Gig.client_id == user.id).order_by(Gig.created_at.desc()).all()
    return render_template(
        "manager/dashboard.html",
        applications=applications,
        claims=pending_claims(s),
        disputes=dispute_queue(s, "open"),
        work_orders=work_orders,
        own_gigs=own_gigs,
    )


@bp.post("/applications/<int:application_id>/review")
@require_permission("applications.review")
def review_application_post(application_id: int):
    s = db_session()
    app = s.get(Application, application_id)
    if not app:
        abort(404)
    decision = (request.form.get("decision") or "").strip()
    try:
        review_application(s, app, decision, _current_user())
        s.commit()
        flash(f"Application #{app.id} is now {app.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("manager.dashboard"))


@bp.post("/claims/<int:claim_id>/review")
@require_permission("claims.review")
def review_claim_post(claim_id: int):
    s = db_session()
    claim = s.get(Claim, claim_id)
    if not claim:
        abort(404)
    try:
        review_claim(
            s,
            claim,
            (request.form.get("decision") or "").strip(),
            _current_user(),
            request.form.get("remarks"),
        )
        s.commit()
        flash(f"Claim #{claim.id} {claim.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("manager.dashboard"))


@bp.post("/work-orders/<int:work_order_id>/cancel")
@require_permission("work_orders.cancel")
def cancel_work_order_post(work_order_id: int):
    s = db_session()
    wo = s.get(WorkOrder, work_order_id)
    if not wo:
        abort(404)
    try:
        cancel_work_order(s, wo, _current_user(), request.form.get("reason") or "")
        s.commit()
        flash(f"Work order #{wo.id} cancelled.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("manager.dashboard"))
