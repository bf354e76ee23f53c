from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import PROOF_TYPES, ROLE_ADMIN, ROLE_MANAGER
from app.gigstm.lifecycle import GIG, LifecycleError, PermissionDenied, transition
from app.gigstm.models import User

from .models import Gig, GigBookmark, GigCategory, GigReview, GigStep, McqQuestion, Training, TrainingModule

logger = logging.getLogger(__name__)


def can_manage_gig(user: User | None, gig: Gig) -> bool:
    if user is None:
        return False
    if user.role in (ROLE_ADMIN, ROLE_MANAGER):
        return True
    return gig.client_id == user.id


def _require_manage(user: User, gig: Gig) -> None:
    if not can_manage_gig(user, gig):
        raise PermissionDenied("Only the gig owner or staff can change this gig.")


def list_categories(s: Session) -> list[GigCategory]:
    return s.query(GigCategory).order_by(GigCategory.name.asc()).all()


def search_gigs(
    s: Session,
    *,
    q: str = "",
    category_id: int | None = None,
    bookmarked_by: int | None = None,
    include_closed: bool = False,
) -> list[Gig]:
    query = s.query(Gig)
    if not include_closed:
        query = query.filter(Gig.status == "active")
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Gig.title.ilike(like), Gig.description.ilike(like), Gig.location.ilike(like)))
    if category_id:
        query = query.filter(Gig.category_id == category_id)
    if bookmarked_by:
        query = query.join(GigBookmark, GigBookmark.gig_id == Gig.id).filter(GigBookmark.user_id == bookmarked_by)
    return query.order_by(Gig.created_at.desc(), Gig.id.desc()).all()


def bookmarked_gig_ids(s: Session, user_id: int) -> set[int]:
    return {row[0] for row in s.query(GigBookmark.gig_id).filter(GigBookmark.user_id == user_id).all()}


def toggle_bookmark(s: Session, user: User, gig: Gig) -> bool:
    """Returns True when the gig is now bookmarked."""
    existing = (
        s.query(GigBookmark).filter(GigBookmark.gig_id == gig.id, GigBookmark.user_id == user.id).one_or_none()
    )
    if existing is not None:
        s.delete(existing)
        return False
    s.add(GigBookmark(gig_id=gig.id, user_id=user.id))
    return True


def parse_pay_amount(raw: str | None) -> Decimal:
    try:
        amount = Decimal((raw or "").strip() or "0").quantize(Decimal("0.01"))
    except InvalidOperation:
        raise LifecycleError("Pay amount must be a number.")
    if not amount.is_finite() or amount < 0:
        raise LifecycleError("Pay amount cannot be negative.")
    return amount


def parse_steps(titles: list[str], descriptions: list[str], proof_types: list[str]) -> list[dict]:
    steps: list[dict] = []
    for i, title in enumerate(titles):
        title = (title or "").strip()
        if not title:
            continue
        proof = (proof_types[i] if i < len(proof_types) else "image") or "image"
        if proof not in PROOF_TYPES:
            raise LifecycleError(f"Unknown proof type: {proof}")
        desc = descriptions[i] if i < len(descriptions) else ""
        steps.append({"title": title, "description": (desc or "").strip() or None, "required_proof_type": proof})
    return steps


def create_gig(
    s: Session,
    user: User,
    *,
    title: str,
    description: str,
    pay_amount: Decimal,
    category_id: int | None,
    location: str | None,
    steps: list[dict],
) -> Gig:
    title = (title or "").strip()
    if not title:
        raise LifecycleError("Title is required.")
    if not steps:
        raise LifecycleError("A gig needs at least one step.")
    if category_id is not None and s.get(GigCategory, category_id) is None:
        raise LifecycleError("Unknown category.")

    gig = Gig(
        title=title,
        description=(description or "").strip(),
        pay_amount=pay_amount,
        category_id=category_id,
        location=(location or "").strip() or None,
        status=GIG.initial,
        client_id=user.id,
    )
    for order, step in enumerate(steps, start=1):
        gig.steps.append(GigStep(step_order=order, **step))
    s.add(gig)
    s.flush()
    record_event(
        s,
        actor=user,
        action="gig.create",
        entity_type="Gig",
        entity_id=str(gig.id),
        metadata={"title": gig.title, "pay_amount": str(pay_amount), "steps": len(steps)},
    )
    logger.info("Gig %s created by user %s", gig.id, user.id)
    return gig


def set_gig_status(s: Session, user: User, gig: Gig, new_status: str) -> Gig:
    _require_manage(user, gig)
    old = transition(s, gig, GIG, new_status, updated_at=datetime.utcnow())
    record_event(
        s,
        actor=user,
        action="gig.status_change",
        entity_type="Gig",
        entity_id=str(gig.id),
        metadata={"from": old, "to": new_status},
    )
    return gig


def add_question(s: Session, user: User, gig: Gig, *, question: str, options: list[str], correct_index: int) -> McqQuestion:
    _require_manage(user, gig)
    question = (question or "").strip()
    options = [o.strip() for o in options if o and o.strip()]
    if not question:
        raise LifecycleError("Question text is required.")
    if len(options) < 2:
        raise LifecycleError("Provide at least two options.")
    if not 0 <= correct_index < len(options):
        raise LifecycleError("Correct option must be one of the options.")
    q = McqQuestion(question=question, options_json=json.dumps(options), correct_option_index=correct_index)
    gig.questions.append(q)
    s.flush()
    record_event(s, actor=user, action="gig.question_add", entity_type="McqQuestion", entity_id=str(q.id), metadata={"gig_id": gig.id})
    return q


def add_training_module(
    s: Session,
    user: User,
    gig: Gig,
    *,
    title: str,
    content: str,
    training_title: str | None = None,
) -> TrainingModule:
    _require_manage(user, gig)
    title = (title or "").strip()
    if not title:
        raise LifecycleError("Module title is required.")
    training = gig.training
    if training is None:
        training = Training(title=(training_title or "").strip() or f"{gig.title} training")
        gig.training = training
        s.flush()
    next_order = (
        s.query(func.coalesce(func.max(TrainingModule.module_order), 0))
        .filter(TrainingModule.training_id == training.id)
        .scalar()
        + 1
    )
    module = TrainingModule(module_order=next_order, title=title, content=(content or "").strip())
    training.modules.append(module)
    s.flush()
    record_event(
        s,
        actor=user,
        action="gig.training_module_add",
        entity_type="TrainingModule",
        entity_id=str(module.id),
        metadata={"gig_id": gig.id},
    )
    return module


def can_review(s: Session, user: User, gig: Gig) -> bool:
    """Workers who were accepted and have at least one approved claim on the gig."""
    from app.gigstm.modules.applications.models import Application, WorkOrder
    from app.gigstm.modules.claims.models import Claim

    row = (
        s.query(Claim.id)
        .join(WorkOrder, WorkOrder.id == Claim.work_order_id)
        .join(Application, Application.id == WorkOrder.application_id)
        .filter(
            Application.gig_id == gig.id,
            Application.user_id == user.id,
            Application.status == "accepted",
            Claim.status == "approved",
        )
        .first()
    )
    return row is not None


def add_review(s: Session, user: User, gig: Gig, *, rating: int, comment: str | None) -> GigReview:
    if not 1 <= rating <= 5:
        raise LifecycleError("Rating must be between 1 and 5.")
    if not can_review(s, user, gig):
        raise PermissionDenied("You can review a gig after completing work on it.")
    existing = s.query(GigReview).filter(GigReview.gig_id == gig.id, GigReview.user_id == user.id).one_or_none()
    if existing is not None:
        raise LifecycleError("You have already reviewed this gig.")
    review = GigReview(gig_id=gig.id, user_id=user.id, rating=rating, comment=(comment or "").strip() or None)
    s.add(review)
    s.flush()
    record_event(s, actor=user, action="gig.review", entity_type="GigReview", entity_id=str(review.id), metadata={"gig_id": gig.id, "rating": rating})
    return review


def gig_reviews(s: Session, gig_id: int) -> tuple[list[GigReview], float | None]:
    reviews = s.query(GigReview).filter(GigReview.gig_id == gig_id).order_by(GigReview.created_at.desc()).all()
    avg = round(sum(r.rating for r in reviews) / len(reviews), 1) if reviews else None
    return reviews, avg
