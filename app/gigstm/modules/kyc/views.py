from __future__ import annotations

from flask import Blueprint, abort, current_app, flash, g, redirect, render_template, request, send_file, url_for

from app.gigstm.constants import KYC_DOCUMENT_TYPES
from app.gigstm.db import db_session
from app.gigstm.lifecycle import LifecycleError
from app.gigstm.models import User
from app.gigstm.rbac import require_permission, user_has_permission
from app.gigstm.storage import StorageError, storage_from_config

from .models import KycDocument
from .service import is_verified, review_document, upload_document

bp = Blueprint("kyc", __name__)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        abort(401)
    return u


@bp.get("/kyc")
@require_permission("kyc.upload")
def index():
    s = db_session()
    user = _current_user()
    docs = (
        s.query(KycDocument)
        .filter(KycDocument.user_id == user.id)
        .order_by(KycDocument.uploaded_at.desc())
        .all()
    )
    return render_template(
        "kyc/index.html",
        documents=docs,
        document_types=KYC_DOCUMENT_TYPES,
        verified=is_verified(s, user.id),
    )


@bp.post("/kyc")
@require_permission("kyc.upload")
def upload_post():
    s = db_session()
    f = request.files.get("file")
    if not f or f.filename == "":
        flash("No file selected.", "danger")
        return redirect(url_for("kyc.index"))
    try:
        upload_document(
            s,
            _current_user(),
            document_type=(request.form.get("document_type") or "").strip(),
            file_bytes=f.read(),
            filename=f.filename,
            content_type=f.mimetype or "",
        )
        s.commit()
        flash("Document uploaded. We will review it shortly.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    except StorageError as e:
        s.rollback()
        current_app.logger.error("KYC upload failed: %s", e)
        flash("Upload failed. Please try again.", "danger")
    return redirect(url_for("kyc.index"))


@bp.get("/admin/kyc")
@require_permission("kyc.review")
def review_queue():
    s = db_session()
    status = (request.args.get("status") or "pending").strip()
    q = s.query(KycDocument)
    if status != "all":
        q = q.filter(KycDocument.status == status)
    docs = q.order_by(KycDocument.uploaded_at.asc()).all()
    return render_template("kyc/review.html", documents=docs, status=status)


@bp.post("/admin/kyc/<int:doc_id>")
@require_permission("kyc.review")
def review_post(doc_id: int):
    s = db_session()
    doc = s.get(KycDocument, doc_id)
    if not doc:
        abort(404)
    try:
        review_document(s, doc, (request.form.get("decision") or "").strip(), _current_user(), request.form.get("remarks"))
        s.commit()
        flash(f"Document #{doc.id} {doc.status}.", "success")
    except LifecycleError as e:
        s.rollback()
        flash(str(e), "danger")
    return redirect(url_for("kyc.review_queue"))


@bp.get("/kyc/<int:doc_id>/download")
@require_permission("kyc.upload")
def download(doc_id: int):
    s = db_session()
    user = _current_user()
    doc = s.get(KycDocument, doc_id)
    if not doc:
        abort(404)
    if doc.user_id != user.id and not user_has_permission(user, "kyc.review"):
        abort(403)
    try:
        fobj = storage_from_config(current_app.config).open(doc.storage_key)
    except StorageError:
        abort(404)
    return send_file(fobj, mimetype=doc.content_type, as_attachment=True, download_name=doc.filename, max_age=0)
