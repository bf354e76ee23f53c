from __future__ import annotations

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission

from .models import WithdrawRequest
from .service import (
    available_balance,
    ensure_wallet,
    list_transactions,
    pending_withdrawals_total,
    process_withdrawal,
    request_withdrawal,
    to_money,
)

bp = Blueprint("wallet", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


@bp.get("/wallet")
@require_permission("wallet.view")
def index():
    s = db_session()
    user = _current_user()
    wallet = ensure_wallet(s, user.id)
    s.commit()
    requests_ = (
        s.query(WithdrawRequest)
        .filter(WithdrawRequest.user_id == user.id)
        .order_by(WithdrawRequest.created_at.desc())
        .all()
    )
    return render_template(
        "wallet/index.html",
        wallet=wallet,
        available=available_balance(s, user.id),
        pending_total=pending_withdrawals_total(s, user.id),
        transactions=list_transactions(s, user.id),
        withdraw_requests=requests_,
    )


@bp.post("/wallet/withdraw")
@require_permission("wallet.withdraw")
def withdraw_post():
    s = db_session()
    try:
        amount = to_money(request.form.get("amount"))
        req = request_withdrawal(s, _current_user(), amount)
        s.commit()
        flash(f"Withdrawal request for ${req.amount} submitted.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("wallet.index"))


@bp.get("/admin/payouts")
@require_permission("payouts.manage")
def payouts():
    s = db_session()
    status = (request.args.get("status") or "pending").strip()
    q = s.query(WithdrawRequest)
    if status != "all":
        q = q.filter(WithdrawRequest.status == status)
    rows = q.order_by(WithdrawRequest.created_at.asc()).all()
    return render_template("wallet/payouts.html", withdraw_requests=rows, status=status)


@bp.post("/admin/payouts/<int:request_id>")
@require_permission("payouts.manage")
def process_post(request_id: int):
    s = db_session()
    req = s.get(WithdrawRequest, request_id)
    if not req:
        abort(404)
    try:
        process_withdrawal(
            s,
            req,
            (request.form.get("decision") or "").strip(),
            _current_user(),
            request.form.get("remarks"),
        )
        s.commit()
        flash(f"Withdrawal #{req.id} {req.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("wallet.payouts"))
