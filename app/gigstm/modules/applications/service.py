"""
Application and work-order lifecycle.

apply -> (testing) -> (training) -> accepted -> work order, or rejected at the
manager review or MCQ step. Callers commit once per operation.
"""
from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from decimal import ROUND_CEILING, Decimal

from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import MCQ_PASS_RATIO, WORK_ORDER_DUE_DAYS
from app.gigstm.lifecycle import (
    APPLICATION,
    WORK_ORDER,
    LifecycleError,
    PermissionDenied,
    TransitionError,
    transition,
)
from app.gigstm.models import User
from app.gigstm.modules.gigs.models import Gig
from app.gigstm.modules.notifications.service import notify, notify_staff

from .models import Application, McqResult, WorkOrder

logger = logging.getLogger(__name__)


def pass_threshold(question_count: int) -> int:
    return int((MCQ_PASS_RATIO * question_count).to_integral_value(rounding=ROUND_CEILING))


def get_application(s: Session, gig_id: int, user_id: int) -> Application | None:
    return (
        s.query(Application)
        .filter(Application.gig_id == gig_id, Application.user_id == user_id)
        .one_or_none()
    )


def _create_work_order(s: Session, app: Application) -> WorkOrder:
    wo = WorkOrder(
        application_id=app.id,
        user_id=app.user_id,
        gig_id=app.gig_id,
        status=WORK_ORDER.initial,
        due_date=datetime.utcnow() + timedelta(days=WORK_ORDER_DUE_DAYS),
    )
    app.work_order = wo
    s.add(wo)
    s.flush()
    logger.info("Work order %s created for application %s", wo.id, app.id)
    return wo


def _accept(s: Session, app: Application) -> WorkOrder:
    """Move to accepted and open the work order."""
    transition(s, app, APPLICATION, "accepted")
    wo = _create_work_order(s, app)
    notify(
        s,
        app.user_id,
        "Application accepted",
        f"You can now start working on \"{app.gig.title}\".",
        type="success",
        link=f"/applications/work-orders/{wo.id}",
    )
    return wo


def _to_training(s: Session, app: Application) -> None:
    transition(s, app, APPLICATION, "training")
    notify(
        s,
        app.user_id,
        "Training required",
        f"Complete the training for \"{app.gig.title}\" to start working.",
        link=f"/applications/{app.id}/training",
    )


def apply(s: Session, gig: Gig, worker: User) -> Application:
    if gig.status != "active":
        raise LifecycleError("This gig is not accepting applications.")
    if gig.client_id == worker.id:
        raise PermissionDenied("You cannot apply to your own gig.")
    if get_application(s, gig.id, worker.id) is not None:
        raise LifecycleError("You have already applied to this gig.")

    app = Application(gig_id=gig.id, user_id=worker.id, status=APPLICATION.initial)
    app.gig = gig
    s.add(app)
    s.flush()

    if gig.questions:
        transition(s, app, APPLICATION, "testing")
        notify(
            s,
            worker.id,
            "Qualification test",
            f"Take the test for \"{gig.title}\" to continue your application.",
            link=f"/applications/{app.id}/test",
        )
    elif gig.training is not None:
        _to_training(s, app)
    else:
        notify_staff(
            s,
            "New application",
            f"{worker.display_name} applied to \"{gig.title}\".",
            link="/manager/",
        )

    record_event(
        s,
        actor=worker,
        action="application.create",
        entity_type="Application",
        entity_id=str(app.id),
        metadata={"gig_id": gig.id, "status": app.status},
    )
    return app


def review_application(s: Session, app: Application, decision: str, reviewer: User) -> Application:
    if decision not in ("accepted", "rejected"):
        raise TransitionError(f"Unknown decision: {decision}")
    if app.status != "pending":
        raise TransitionError(f"Application is {app.status}; only pending applications can be reviewed.")

    app.reviewed_by_user_id = reviewer.id
    app.reviewed_at = datetime.utcnow()
    if decision == "rejected":
        transition(s, app, APPLICATION, "rejected")
        notify(
            s,
            app.user_id,
            "Application rejected",
            f"Your application for \"{app.gig.title}\" was not accepted.",
            type="error",
            link="/applications/",
        )
    elif app.gig.training is not None:
        _to_training(s, app)
    else:
        _accept(s, app)

    record_event(
        s,
        actor=reviewer,
        action=f"application.review_{decision}",
        entity_type="Application",
        entity_id=str(app.id),
        metadata={"gig_id": app.gig_id, "result_status": app.status},
    )
    return app


def submit_mcq(s: Session, app: Application, user: User, answers: dict[int, int]) -> McqResult:
    if app.user_id != user.id:
        raise PermissionDenied("This is not your application.")
    if app.status != "testing":
        raise TransitionError("This application has no test pending.")

    questions = app.gig.questions
    total = len(questions)
    score = sum(1 for q in questions if answers.get(q.id) == q.correct_option_index)
    needed = pass_threshold(total)
    passed = score >= needed

    result = McqResult(
        application_id=app.id,
        score=score,
        total_questions=total,
        passed=passed,
        details_json=json.dumps({"answers": {str(k): v for k, v in answers.items()}, "needed": needed}),
    )
    s.add(result)

    if not passed:
        transition(s, app, APPLICATION, "rejected")
        notify(
            s,
            app.user_id,
            "Test not passed",
            f"You scored {score}/{total} on the test for \"{app.gig.title}\" ({needed} needed).",
            type="error",
            link="/applications/",
        )
    elif app.gig.training is not None:
        _to_training(s, app)
    else:
        _accept(s, app)

    record_event(
        s,
        actor=user,
        action="application.mcq_submit",
        entity_type="Application",
        entity_id=str(app.id),
        metadata={"score": score, "total": total, "passed": passed},
    )
    logger.info("Application %s MCQ %s/%s passed=%s", app.id, score, total, passed)
    return result


def complete_training(s: Session, app: Application, user: User) -> WorkOrder:
    if app.user_id != user.id:
        raise PermissionDenied("This is not your application.")
    if app.status != "training":
        raise TransitionError("This application has no training pending.")
    wo = _accept(s, app)
    record_event(
        s,
        actor=user,
        action="application.training_complete",
        entity_type="Application",
        entity_id=str(app.id),
        metadata={"work_order_id": wo.id},
    )
    return wo


def cancel_work_order(s: Session, wo: WorkOrder, reviewer: User, reason: str) -> WorkOrder:
    reason = (reason or "").strip()
    if not reason:
        raise LifecycleError("A reason is required to cancel a work order.")
    transition(s, wo, WORK_ORDER, "cancelled", cancel_reason=reason)
    notify(
        s,
        wo.user_id,
        "Work order cancelled",
        f"Your work order for \"{wo.gig.title}\" was cancelled: {reason}",
        type="warning",
        link="/applications/",
    )
    record_event(
        s,
        actor=reviewer,
        action="work_order.cancel",
        entity_type="WorkOrder",
        entity_id=str(wo.id),
        reason=reason,
    )
    return wo


def list_for_worker(s: Session, user_id: int) -> list[Application]:
    return (
        s.query(Application)
        .filter(Application.user_id == user_id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )


def step_progress(wo: WorkOrder) -> list[dict]:
    """Per-step view of a work order: the step and its claim (if any)."""
    by_step = {c.gig_step_id: c for c in wo.claims}
    return [{"step": step, "claim": by_step.get(step.id)} for step in wo.gig.steps]
