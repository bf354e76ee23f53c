from datetime import date, datetime, time, timedelta
from decimal import Decimal

from flask import Blueprint, abort, flash, g, redirect, render_template, request, url_for
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import ROLES, USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED
from app.gigstm.db import db_session
from app.gigstm.models import AuditEvent, Role, User
from app.gigstm.modules.applications.models import Application, WorkOrder
from app.gigstm.modules.claims.models import Claim
from app.gigstm.modules.disputes.models import Dispute
from app.gigstm.modules.gigs.models import Gig
from app.gigstm.modules.kyc.models import KycDocument
from app.gigstm.modules.support.models import SupportTicket
from app.gigstm.modules.wallet.models import Transaction, WithdrawRequest
from app.gigstm.rbac import require_permission, set_user_role

bp = Blueprint("admin", __name__)


def _parse_date(s: str) -> date | None:
    s = (s or "").strip()
    if not s:
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _count(s: Session, model, *criteria) -> int:
    return s.query(func.count(model.id)).filter(*criteria).scalar() or 0


def dashboard_counts(s: Session) -> dict:
    return {
        "users": _count(s, User),
        "active_gigs": _count(s, Gig, Gig.status == "active"),
        "pending_applications": _count(s, Application, Application.status == "pending"),
        "pending_claims": _count(
            s,
            Claim,
            Claim.status == "pending",
            Claim.work_order.has(WorkOrder.status != "cancelled"),
        ),
        "open_disputes": _count(s, Dispute, Dispute.status == "open"),
        "pending_withdrawals": _count(s, WithdrawRequest, WithdrawRequest.status == "pending"),
        "pending_kyc": _count(s, KycDocument, KycDocument.status == "pending"),
        "open_tickets": _count(s, SupportTicket, SupportTicket.status.in_(("open", "in_progress"))),
    }


def _sum_transactions(s: Session, transaction_type: str, reference_type: str | None = None) -> Decimal:
    q = s.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(Transaction.transaction_type == transaction_type)
    if reference_type:
        q = q.filter(Transaction.reference_type == reference_type)
    return Decimal(str(q.scalar() or 0)).quantize(Decimal("0.01"))


def analytics_summary(s: Session) -> dict:
    approved = _count(s, Claim, Claim.status == "approved")
    rejected = _count(s, Claim, Claim.status == "rejected")
    reviewed = approved + rejected
    users_by_role = dict(
        s.query(Role.key, func.count(User.id)).join(User.roles).group_by(Role.key).all()
    )
    return {
        "total_users": _count(s, User),
        "users_by_role": {r: users_by_role.get(r, 0) for r in ROLES},
        "total_gigs": _count(s, Gig),
        "total_applications": _count(s, Application),
        "completed_work_orders": _count(s, WorkOrder, WorkOrder.status == "completed"),
        "approved_claims": approved,
        "rejected_claims": rejected,
        "approval_rate": round(approved * 100.0 / reviewed, 1) if reviewed else None,
        "total_earned": _sum_transactions(s, "credit", "claim"),
        "referral_bonuses": _sum_transactions(s, "credit", "referral"),
        "total_paid_out": _sum_transactions(s, "debit", "withdraw_request"),
    }


@bp.get("/")
@require_permission("admin.view")
def index():
    s = db_session()
    recent = s.query(AuditEvent).order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(10).all()
    return render_template("admin/index.html", counts=dashboard_counts(s), recent_events=recent)


@bp.get("/analytics")
@require_permission("analytics.view")
def analytics():
    s = db_session()
    return render_template("admin/analytics.html", stats=analytics_summary(s))


@bp.get("/users")
@require_permission("users.manage")
def users_list():
    s = db_session()
    q_text = (request.args.get("q") or "").strip()
    role = (request.args.get("role") or "").strip()
    q = s.query(User)
    if q_text:
        like = f"%{q_text.lower()}%"
        q = q.filter(or_(User.email.like(like), User.full_name.ilike(like)))
    if role in ROLES:
        q = q.join(User.roles).filter(Role.key == role)
    users = q.order_by(User.created_at.desc()).limit(500).all()
    return render_template("admin/users.html", users=users, roles=ROLES, q=q_text, role=role)


@bp.post("/users/<int:user_id>/update")
@require_permission("users.manage")
def users_update(user_id: int):
    s = db_session()
    me = _current_user()
    user = s.get(User, user_id)
    if not user:
        abort(404)

    if user.id == me.id:
        flash("You cannot change your own role or status.", "danger")
        return redirect(url_for("admin.users_list"))

    role_key = (request.form.get("role") or "").strip()
    status = (request.form.get("status") or "").strip()
    if role_key and role_key not in ROLES:
        flash(f"Unknown role: {role_key}", "danger")
        return redirect(url_for("admin.users_list"))
    if status and status not in (USER_STATUS_ACTIVE, USER_STATUS_SUSPENDED):
        flash(f"Unknown status: {status}", "danger")
        return redirect(url_for("admin.users_list"))

    before = {"role": user.role, "status": user.status}
    if role_key and role_key != user.role:
        set_user_role(s, user, role_key)
    if status:
        user.status = status
    user.updated_at = datetime.utcnow()
    after = {"role": role_key or before["role"], "status": user.status}

    record_event(
        s,
        actor=me,
        action="user.update",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"before": before, "after": after},
    )
    s.commit()
    flash(f"Account updated for {user.email}.", "success")
    return redirect(url_for("admin.users_list"))


@bp.get("/logs")
@require_permission("logs.view")
def logs():
    """
    Activity log (last 200 audit events) with filters:
    - action (contains)
    - actor_email (contains)
    - entity_type (exact)
    - date range (YYYY-MM-DD, inclusive)
    """
    s = db_session()
    action = (request.args.get("action") or "").strip()
    actor_email = (request.args.get("actor_email") or "").strip()
    entity_type = (request.args.get("entity_type") or "").strip()
    date_from = _parse_date(request.args.get("date_from") or "")
    date_to = _parse_date(request.args.get("date_to") or "")

    if (request.args.get("date_from") or "").strip() and not date_from:
        flash("date_from must be YYYY-MM-DD", "danger")
    if (request.args.get("date_to") or "").strip() and not date_to:
        flash("date_to must be YYYY-MM-DD", "danger")

    q = s.query(AuditEvent)
    if action:
        q = q.filter(AuditEvent.action.like(f"%{action}%"))
    if actor_email:
        q = q.filter(AuditEvent.actor_user_email.like(f"%{actor_email.lower()}%"))
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if date_from:
        q = q.filter(AuditEvent.created_at >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(AuditEvent.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

    events = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(200).all()
    return render_template(
        "admin/logs.html",
        events=events,
        action=action,
        actor_email=actor_email,
        entity_type=entity_type,
        date_from=(request.args.get("date_from") or "").strip(),
        date_to=(request.args.get("date_to") or "").strip(),
    )
