from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy.orm import Session

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.modules.claims.models import Claim
from app.gigstm.rbac import require_permission

from .models import Dispute
from .service import OUTCOMES, list_for_worker, queue, raise_dispute, resolve_dispute

bp = Blueprint("disputes", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


def _get_own_claim_or_404(s: Session, claim_id: int) -> Claim:
    claim = s.get(Claim, claim_id)
    if not claim or claim.user_id != _current_user().id:
        abort(404)
    return claim


@bp.get("/")
@require_permission("disputes.raise")
def my_disputes():
    s = db_session()
    return render_template("disputes/list.html", disputes=list_for_worker(s, _current_user().id))


@bp.get("/new/<int:claim_id>")
@require_permission("disputes.raise")
def new_get(claim_id: int):
    s = db_session()
    claim = _get_own_claim_or_404(s, claim_id)
    if claim.status != "rejected":
        flash("Only rejected claims can be disputed.", "info")
        return redirect(url_for("disputes.my_disputes"))
    return render_template("disputes/new.html", claim=claim)


@bp.post("/new/<int:claim_id>")
@require_permission("disputes.raise")
def new_post(claim_id: int):
    s = db_session()
    claim = _get_own_claim_or_404(s, claim_id)
    try:
        raise_dispute(s, claim, _current_user(), request.form.get("reason") or "")
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("disputes.new_get", claim_id=claim.id))
    flash("Dispute submitted. A manager will review it.", "success")
    return redirect(url_for("disputes.my_disputes"))


@bp.get("/queue")
@require_permission("disputes.resolve")
def queue_get():
    s = db_session()
    status = (request.args.get("status") or "open").strip()
    if status == "all":
        status = ""
    return render_template("disputes/queue.html", disputes=queue(s, status or None), status=status or "all")


@bp.get("/<int:dispute_id>")
@require_permission("disputes.resolve")
def detail(dispute_id: int):
    s = db_session()
    dispute = s.get(Dispute, dispute_id)
    if not dispute:
        abort(404)
    return render_template("disputes/detail.html", dispute=dispute, outcomes=OUTCOMES)


@bp.post("/<int:dispute_id>/resolve")
@require_permission("disputes.resolve")
def resolve_post(dispute_id: int):
    s = db_session()
    dispute = s.get(Dispute, dispute_id)
    if not dispute:
        abort(404)
    try:
        resolve_dispute(
            s,
            dispute,
            (request.form.get("outcome") or "").strip(),
            request.form.get("resolution") or "",
            _current_user(),
        )
        s.commit()
        flash(f"Dispute {dispute.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("disputes.queue_get"))

