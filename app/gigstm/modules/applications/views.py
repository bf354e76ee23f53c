"""
Worker-facing application pages: dashboard, qualification test, training and
proof submission per work order.
"""
from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, send_file, url_for
from sqlalchemy.orm import Session

from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.modules.claims.models import ClaimMedia
from app.gigstm.modules.claims.service import can_view_claim, submit_claim
from app.gigstm.modules.gigs.models import GigStep
from app.gigstm.rbac import require_login, require_permission
from app.gigstm.storage import StorageError, storage_from_config

from .models import Application, WorkOrder
from .service import complete_training, list_for_worker, pass_threshold, step_progress, submit_mcq

bp = Blueprint("applications", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


def _get_own_application_or_404(s: Session, application_id: int) -> Application:
    app = s.get(Application, application_id)
    if not app or app.user_id != _current_user().id:
        abort(404)
    return app


def _get_own_work_order_or_404(s: Session, work_order_id: int) -> WorkOrder:
    wo = s.get(WorkOrder, work_order_id)
    if not wo or wo.user_id != _current_user().id:
        abort(404)
    return wo


@bp.get("/")
@require_permission("applications.view")
def dashboard():
    s = db_session()
    applications = list_for_worker(s, _current_user().id)
    progress = {a.id: step_progress(a.work_order) for a in applications if a.work_order is not None}
    return render_template("applications/dashboard.html", applications=applications, progress=progress)


@bp.get("/<int:application_id>/test")
@require_permission("applications.view")
def test_get(application_id: int):
    s = db_session()
    app = _get_own_application_or_404(s, application_id)
    if app.status != "testing":
        flash("This application has no test pending.", "info")
        return redirect(url_for("applications.dashboard"))
    questions = app.gig.questions
    return render_template("applications/test.html", application=app, questions=questions, needed=pass_threshold(len(questions)))


@bp.post("/<int:application_id>/test")
@require_permission("applications.view")
def test_post(application_id: int):
    s = db_session()
    app = _get_own_application_or_404(s, application_id)
    answers: dict[int, int] = {}
    for q in app.gig.questions:
        raw = request.form.get(f"q_{q.id}")
        if raw is not None and raw.strip().lstrip("-").isdigit():
            answers[q.id] = int(raw)
    try:
        result = submit_mcq(s, app, _current_user(), answers)
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("applications.dashboard"))

    if result.passed:
        flash(f"You passed with {result.score}/{result.total_questions}.", "success")
        if app.status == "training":
            return redirect(url_for("applications.training_get", application_id=app.id))
    else:
        flash(f"You scored {result.score}/{result.total_questions}. The test was not passed.", "danger")
    return redirect(url_for("applications.dashboard"))


@bp.get("/<int:application_id>/training")
@require_permission("applications.view")
def training_get(application_id: int):
    s = db_session()
    app = _get_own_application_or_404(s, application_id)
    training = app.gig.training
    if app.status != "training" or training is None:
        flash("This application has no training pending.", "info")
        return redirect(url_for("applications.dashboard"))
    return render_template("applications/training.html", application=app, training=training)


@bp.post("/<int:application_id>/training/complete")
@require_permission("applications.view")
def training_complete_post(application_id: int):
    s = db_session()
    app = _get_own_application_or_404(s, application_id)
    try:
        wo = complete_training(s, app, _current_user())
        s.commit()
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
        return redirect(url_for("applications.dashboard"))
    flash("Training complete. You can start working.", "success")
    return redirect(url_for("applications.work_order", work_order_id=wo.id))


@bp.get("/work-orders/<int:work_order_id>")
@require_permission("tasks.submit")
def work_order(work_order_id: int):
    s = db_session()
    wo = _get_own_work_order_or_404(s, work_order_id)
    return render_template("tasks/submit.html", work_order=wo, progress=step_progress(wo))


@bp.post("/work-orders/<int:work_order_id>/steps/<int:step_id>")
@require_permission("tasks.submit")
def submit_step_post(work_order_id: int, step_id: int):
    s = db_session()
    wo = _get_own_work_order_or_404(s, work_order_id)
    step = s.get(GigStep, step_id)
    if not step:
        abort(404)

    upload = None
    f = request.files.get("file")
    if f and f.filename:
        upload = {"filename": f.filename, "content_type": f.mimetype or "", "data": f.read()}

    try:
        submit_claim(s, wo, step, _current_user(), text=request.form.get("text") or "", upload=upload)
        s.commit()
        flash(f"Proof for \"{step.title}\" submitted.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    except StorageError as e:
        s.rollback()
        current_app.logger.error("Claim media upload failed (work_order=%s): %s", wo.id, e)
        flash("Upload failed. Please try again.", "danger")
    return redirect(url_for("applications.work_order", work_order_id=wo.id))


@bp.get("/claim-media/<int:media_id>")
@require_login
def claim_media_download(media_id: int):
    s = db_session()
    media = s.get(ClaimMedia, media_id)
    if not media:
        abort(404)
    if not can_view_claim(_current_user(), media.claim):
        abort(403)
    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(media.storage_key)
    except StorageError:
        abort(404)
    return send_file(
        fobj,
        mimetype=media.content_type,
        as_attachment=media.media_type != "image",
        download_name=media.filename,
        max_age=0,
    )
