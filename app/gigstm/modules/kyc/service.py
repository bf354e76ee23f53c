from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import KYC_DOCUMENT_TYPES
from app.gigstm.lifecycle import KYC_DOCUMENT, LifecycleError, TransitionError, transition
from app.gigstm.models import User
from app.gigstm.modules.notifications.service import notify, notify_staff
from app.gigstm.storage import Storage, file_digest_and_bytes, storage_from_config, unique_object_name

from .models import KycDocument

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_PREFIXES = ("image/", "application/pdf")


def upload_document(
    s: Session,
    user: User,
    *,
    document_type: str,
    file_bytes: bytes,
    filename: str,
    content_type: str,
    storage: Storage | None = None,
) -> KycDocument:
    if document_type not in KYC_DOCUMENT_TYPES:
        raise LifecycleError("Choose a valid document type.")
    if not file_bytes:
        raise LifecycleError("Choose a file to upload.")
    content_type = content_type or "application/octet-stream"
    if not content_type.startswith(ALLOWED_CONTENT_PREFIXES):
        raise LifecycleError("KYC documents must be images or PDFs.")

    storage = storage or storage_from_config(current_app.config)
    sha256, size = file_digest_and_bytes(file_bytes)
    key = f"kyc/{user.id}/{document_type}/{unique_object_name(filename)}"
    storage.put_bytes(key, file_bytes, content_type=content_type)

    doc = KycDocument(
        user_id=user.id,
        document_type=document_type,
        storage_key=key,
        filename=filename or "document",
        content_type=content_type,
        sha256=sha256,
        size_bytes=size,
        status=KYC_DOCUMENT.initial,
    )
    s.add(doc)
    s.flush()
    record_event(
        s,
        actor=user,
        action="kyc.upload",
        entity_type="KycDocument",
        entity_id=str(doc.id),
        metadata={"document_type": document_type, "sha256": sha256},
    )
    notify_staff(s, "KYC document uploaded", f"{user.display_name} uploaded a {document_type.replace('_', ' ')}.", link="/admin/kyc")
    return doc


def review_document(s: Session, doc: KycDocument, decision: str, reviewer: User, remarks: str | None = None) -> KycDocument:
    if decision not in ("approved", "rejected"):
        raise TransitionError(f"Unknown decision: {decision}")
    remarks = (remarks or "").strip() or None
    if decision == "rejected" and not remarks:
        raise LifecycleError("Give the user a reason for the rejection.")

    transition(
        s,
        doc,
        KYC_DOCUMENT,
        decision,
        remarks=remarks,
        reviewed_by_user_id=reviewer.id,
        reviewed_at=datetime.utcnow(),
    )
    label = doc.document_type.replace("_", " ")
    if decision == "approved":
        notify(s, doc.user_id, "KYC document approved", f"Your {label} was verified.", type="success", link="/kyc")
    else:
        notify(s, doc.user_id, "KYC document rejected", f"Your {label} was rejected: {remarks}", type="error", link="/kyc")
    record_event(
        s,
        actor=reviewer,
        action=f"kyc.{decision}",
        entity_type="KycDocument",
        entity_id=str(doc.id),
        reason=remarks,
        metadata={"user_id": doc.user_id},
    )
    return doc


def is_verified(s: Session, user_id: int) -> bool:
    return (
        s.query(KycDocument.id)
        .filter(KycDocument.user_id == user_id, KycDocument.status == "approved")
        .first()
        is not None
    )
