from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.lifecycle import CLAIM, DISPUTE, LifecycleError, PermissionDenied, TransitionError, transition
from app.gigstm.models import User
from app.gigstm.modules.claims.models import Claim, ClaimVerification
from app.gigstm.modules.claims.service import pay_claim
from app.gigstm.modules.notifications.service import notify, notify_staff

from .models import Dispute

logger = logging.getLogger(__name__)

OUTCOMES = ("resolved", "closed")


def open_dispute_for(s: Session, claim_id: int) -> Dispute | None:
    return s.query(Dispute).filter(Dispute.claim_id == claim_id, Dispute.status == "open").one_or_none()


def raise_dispute(s: Session, claim: Claim, worker: User, reason: str) -> Dispute:
    reason = (reason or "").strip()
    if claim.user_id != worker.id:
        raise PermissionDenied("You can only dispute your own claims.")
    if not reason:
        raise LifecycleError("Please explain why you are disputing this decision.")
    if open_dispute_for(s, claim.id) is not None:
        raise LifecycleError("This claim already has an open dispute.")
    if claim.status != "rejected":
        raise TransitionError("Only rejected claims can be disputed.")

    transition(s, claim, CLAIM, "disputed")
    dispute = Dispute(claim_id=claim.id, user_id=worker.id, reason=reason, status=DISPUTE.initial)
    s.add(dispute)
    s.flush()

    notify_staff(
        s,
        "New dispute",
        f"{worker.display_name} disputed the rejection of \"{claim.step.title}\".",
        type="warning",
        link="/disputes/queue",
    )
    record_event(
        s,
        actor=worker,
        action="dispute.raise",
        entity_type="Dispute",
        entity_id=str(dispute.id),
        reason=reason,
        metadata={"claim_id": claim.id},
    )
    logger.info("Dispute %s raised on claim %s", dispute.id, claim.id)
    return dispute


def resolve_dispute(s: Session, dispute: Dispute, outcome: str, resolution: str, resolver: User) -> Dispute:
    """
    ``resolved`` sides with the worker (claim approved and paid); ``closed``
    upholds the rejection.
    """
    if outcome not in OUTCOMES:
        raise TransitionError(f"Unknown outcome: {outcome}")
    resolution = (resolution or "").strip()
    if not resolution:
        raise LifecycleError("Resolution notes are required.")
    if outcome == "resolved" and dispute.claim.work_order.status == "cancelled":
        raise TransitionError("Work order was cancelled; the claim cannot be paid.")

    transition(
        s,
        dispute,
        DISPUTE,
        outcome,
        resolution=resolution,
        resolved_by_user_id=resolver.id,
        resolved_at=datetime.utcnow(),
    )
    claim = dispute.claim
    claim_status = "approved" if outcome == "resolved" else "rejected"
    transition(
        s,
        claim,
        CLAIM,
        claim_status,
        reviewer_remarks=resolution,
        reviewed_by_user_id=resolver.id,
        reviewed_at=datetime.utcnow(),
    )
    claim.verifications.append(ClaimVerification(verifier_id=resolver.id, status=claim_status, remarks=resolution))

    if outcome == "resolved":
        pay_claim(s, claim)
        notify(
            s,
            dispute.user_id,
            "Dispute resolved in your favour",
            f"Your claim for \"{claim.step.title}\" has been approved. {resolution}",
            type="success",
            link="/wallet",
        )
    else:
        notify(
            s,
            dispute.user_id,
            "Dispute closed",
            f"The rejection of \"{claim.step.title}\" stands. {resolution}",
            type="warning",
            link="/disputes/",
        )

    record_event(
        s,
        actor=resolver,
        action=f"dispute.{outcome}",
        entity_type="Dispute",
        entity_id=str(dispute.id),
        reason=resolution,
        metadata={"claim_id": claim.id, "claim_status": claim_status},
    )
    return dispute


def list_for_worker(s: Session, user_id: int) -> list[Dispute]:
    return s.query(Dispute).filter(Dispute.user_id == user_id).order_by(Dispute.created_at.desc()).all()


def queue(s: Session, status: str | None = "open") -> list[Dispute]:
    q = s.query(Dispute)
    if status:
        q = q.filter(Dispute.status == status)
    return q.order_by(Dispute.created_at.asc(), Dispute.id.asc()).all()
