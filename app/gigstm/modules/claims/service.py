from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.lifecycle import CLAIM, WORK_ORDER, LifecycleError, PermissionDenied, TransitionError, transition
from app.gigstm.models import User
from app.gigstm.modules.applications.models import WorkOrder
from app.gigstm.modules.gigs.models import GigStep
from app.gigstm.modules.notifications.service import notify, notify_staff
from app.gigstm.modules.profiles.service import complete_pending_referral
from app.gigstm.modules.wallet.service import credit
from app.gigstm.storage import Storage, file_digest_and_bytes, storage_from_config, unique_object_name

from .models import Claim, ClaimMedia, ClaimVerification

logger = logging.getLogger(__name__)


def build_claim_media_key(user_id: int, claim_id: int, filename: str) -> str:
    return f"claims/{user_id}/{claim_id}/{unique_object_name(filename)}"


def validate_proof(step: GigStep, text: str, upload: dict | None) -> str | None:
    """Return an error message when the proof does not satisfy the step."""
    kind = step.required_proof_type
    if kind == "text" and not text:
        return f"Step \"{step.title}\" requires a written description."
    if kind == "image":
        if not upload:
            return f"Step \"{step.title}\" requires an image upload."
        if not (upload.get("content_type") or "").startswith("image/"):
            return f"Step \"{step.title}\" requires an image file."
    if kind == "file" and not upload:
        return f"Step \"{step.title}\" requires a file upload."
    return None


def submit_claim(
    s: Session,
    wo: WorkOrder,
    step: GigStep,
    user: User,
    *,
    text: str = "",
    upload: dict | None = None,
    storage: Storage | None = None,
) -> Claim:
    """
    ``upload`` is ``{"filename", "content_type", "data"}`` or None.
    """
    if wo.user_id != user.id:
        raise PermissionDenied("This work order is not yours.")
    if wo.status != "active":
        raise TransitionError(f"Work order is {wo.status}; proof can no longer be submitted.")
    if step.gig_id != wo.gig_id:
        raise LifecycleError("That step does not belong to this gig.")
    existing = (
        s.query(Claim).filter(Claim.work_order_id == wo.id, Claim.gig_step_id == step.id).one_or_none()
    )
    if existing is not None:
        raise LifecycleError(f"Proof for step \"{step.title}\" was already submitted.")

    text = (text or "").strip()
    if upload is not None and not upload.get("data"):
        upload = None
    err = validate_proof(step, text, upload)
    if err:
        raise LifecycleError(err)

    claim = Claim(
        work_order_id=wo.id,
        gig_step_id=step.id,
        user_id=user.id,
        submission_text=text,
        status=CLAIM.initial,
    )
    wo.claims.append(claim)
    s.flush()

    if upload is not None:
        storage = storage or storage_from_config(current_app.config)
        data: bytes = upload["data"]
        sha256, size = file_digest_and_bytes(data)
        content_type = upload.get("content_type") or "application/octet-stream"
        key = build_claim_media_key(user.id, claim.id, upload.get("filename") or "")
        storage.put_bytes(key, data, content_type=content_type)
        claim.media.append(
            ClaimMedia(
                storage_key=key,
                filename=upload.get("filename") or "upload",
                content_type=content_type,
                media_type="image" if content_type.startswith("image/") else "file",
                sha256=sha256,
                size_bytes=size,
            )
        )

    record_event(
        s,
        actor=user,
        action="claim.submit",
        entity_type="Claim",
        entity_id=str(claim.id),
        metadata={"work_order_id": wo.id, "step_id": step.id, "has_media": upload is not None},
    )

    if len(wo.claims) >= len(wo.gig.steps):
        notify(
            s,
            user.id,
            "Gig submitted for review",
            f"All steps of \"{wo.gig.title}\" are submitted and pending review.",
            link="/applications/",
        )
        notify_staff(
            s,
            "Claims ready for review",
            f"{user.display_name} submitted every step of \"{wo.gig.title}\".",
            link="/manager/",
        )
    logger.info("Claim %s submitted for work order %s step %s", claim.id, wo.id, step.id)
    return claim


def pay_claim(s: Session, claim: Claim) -> None:
    """Credit the worker for an approved claim and finish dependent records."""
    wo = claim.work_order
    gig = wo.gig
    if wo.status == "cancelled":
        raise TransitionError("Work order was cancelled; its claims cannot be paid.")
    amount = Decimal(str(gig.pay_amount))
    # Unpaid gigs leave no ledger row.
    if amount > 0:
        credit(
            s,
            claim.user_id,
            amount,
            description=f"{gig.title}: {claim.step.title}",
            reference_type="claim",
            reference_id=claim.id,
        )
    complete_pending_referral(s, claim.user_id)

    approved = (
        s.query(func.count(Claim.id))
        .filter(Claim.work_order_id == wo.id, Claim.status == "approved")
        .scalar()
        or 0
    )
    if wo.status == "active" and approved >= len(gig.steps):
        transition(s, wo, WORK_ORDER, "completed", completed_at=datetime.utcnow())
        notify(
            s,
            wo.user_id,
            "Gig completed",
            f"Every step of \"{gig.title}\" has been approved.",
            type="success",
            link="/applications/",
        )


def review_claim(s: Session, claim: Claim, decision: str, reviewer: User, remarks: str | None = None) -> Claim:
    if decision not in ("approved", "rejected"):
        raise TransitionError(f"Unknown decision: {decision}")
    if claim.status != "pending":
        raise TransitionError(f"Claim is {claim.status}; only pending claims can be reviewed.")
    if claim.work_order.status == "cancelled":
        raise TransitionError("Work order was cancelled; its claims can no longer be reviewed.")
    remarks = (remarks or "").strip() or None

    transition(
        s,
        claim,
        CLAIM,
        decision,
        reviewer_remarks=remarks,
        reviewed_by_user_id=reviewer.id,
        reviewed_at=datetime.utcnow(),
    )
    claim.verifications.append(ClaimVerification(verifier_id=reviewer.id, status=decision, remarks=remarks))

    gig = claim.work_order.gig
    if decision == "approved":
        pay_claim(s, claim)
        notify(
            s,
            claim.user_id,
            "Claim approved",
            f"Your proof for \"{claim.step.title}\" on \"{gig.title}\" was approved. ${gig.pay_amount} added to your wallet.",
            type="success",
            link="/wallet",
        )
    else:
        notify(
            s,
            claim.user_id,
            "Claim rejected",
            f"Your proof for \"{claim.step.title}\" on \"{gig.title}\" was rejected."
            + (f" Remarks: {remarks}" if remarks else "")
            + " You can raise a dispute.",
            type="error",
            link=f"/disputes/new/{claim.id}",
        )

    record_event(
        s,
        actor=reviewer,
        action=f"claim.{'approve' if decision == 'approved' else 'reject'}",
        entity_type="Claim",
        entity_id=str(claim.id),
        reason=remarks,
        metadata={"work_order_id": claim.work_order_id, "step_id": claim.gig_step_id},
    )
    return claim


def pending_claims(s: Session) -> list[Claim]:
    return (
        s.query(Claim)
        .join(WorkOrder, Claim.work_order_id == WorkOrder.id)
        .filter(Claim.status == "pending", WorkOrder.status != "cancelled")
        .order_by(Claim.created_at.asc(), Claim.id.asc())
        .all()
    )


def can_view_claim(user: User | None, claim: Claim) -> bool:
    from app.gigstm.rbac import user_has_permission

    if user is None:
        return False
    if claim.user_id == user.id:
        return True
    return user_has_permission(user, "claims.review") or user_has_permission(user, "disputes.resolve")
