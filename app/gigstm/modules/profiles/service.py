from __future__ import annotations

import logging
import secrets
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.constants import REFERRAL_BONUS
from app.gigstm.lifecycle import REFERRAL, LifecycleError, transition
from app.gigstm.models import User
from app.gigstm.modules.notifications.service import notify

from .models import Referral, UserExperience

logger = logging.getLogger(__name__)

_REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"

PROFILE_FIELDS = ("full_name", "contact_number", "address", "country", "timezone", "bio")


def generate_referral_code(s: Session, length: int = 8) -> str:
    while True:
        code = "".join(secrets.choice(_REFERRAL_ALPHABET) for _ in range(length))
        if s.query(User.id).filter(User.referral_code == code).first() is None:
            return code


def record_referral(s: Session, referred: User, code: str | None) -> Referral | None:
    """Link a freshly signed-up user to the owner of ``code``. Unknown codes are ignored."""
    code = (code or "").strip().upper()
    if not code:
        return None
    referrer = s.query(User).filter(User.referral_code == code).one_or_none()
    if referrer is None or referrer.id == referred.id:
        logger.info("Ignoring unknown referral code %r", code)
        return None
    ref = Referral(referrer_id=referrer.id, referred_id=referred.id, status=REFERRAL.initial)
    s.add(ref)
    return ref


def complete_pending_referral(s: Session, referred_user_id: int) -> Referral | None:
    """Pay the referrer once the referred user's first claim is approved."""
    from app.gigstm.modules.wallet.service import credit

    ref = (
        s.query(Referral)
        .filter(Referral.referred_id == referred_user_id, Referral.status == "pending")
        .one_or_none()
    )
    if ref is None:
        return None
    transition(s, ref, REFERRAL, "completed", bonus_amount=REFERRAL_BONUS, completed_at=datetime.utcnow())
    credit(
        s,
        ref.referrer_id,
        REFERRAL_BONUS,
        description="Referral bonus",
        reference_type="referral",
        reference_id=ref.id,
    )
    notify(
        s,
        ref.referrer_id,
        "Referral bonus earned",
        f"You earned ${REFERRAL_BONUS} because someone you referred completed their first task.",
        type="success",
        link="/profile/referrals",
    )
    return ref


def referral_summary(s: Session, user: User) -> dict:
    refs = (
        s.query(Referral)
        .filter(Referral.referrer_id == user.id)
        .order_by(Referral.created_at.desc())
        .all()
    )
    earned = sum((r.bonus_amount or 0) for r in refs if r.status == "completed")
    return {
        "referrals": refs,
        "completed": sum(1 for r in refs if r.status == "completed"),
        "pending": sum(1 for r in refs if r.status == "pending"),
        "earned": earned,
    }


def update_profile(s: Session, user: User, form: dict) -> User:
    before = {k: getattr(user, k) for k in PROFILE_FIELDS}
    for key in PROFILE_FIELDS:
        if key in form:
            setattr(user, key, (form.get(key) or "").strip() or None)

    raw_dob = (form.get("date_of_birth") or "").strip()
    if raw_dob:
        try:
            user.date_of_birth = datetime.strptime(raw_dob, "%Y-%m-%d").date()
        except ValueError:
            raise LifecycleError("Date of birth must be YYYY-MM-DD.")
        if user.date_of_birth > date.today():
            raise LifecycleError("Date of birth cannot be in the future.")
    elif "date_of_birth" in form:
        user.date_of_birth = None

    user.updated_at = datetime.utcnow()
    changed = sorted(k for k in PROFILE_FIELDS if before[k] != getattr(user, k))
    record_event(s, actor=user, action="profile.update", entity_type="User", entity_id=str(user.id), metadata={"changed": changed})
    return user


def _parse_optional_date(raw: str | None, label: str) -> date | None:
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise LifecycleError(f"{label} must be YYYY-MM-DD.")


def add_experience(s: Session, user: User, form: dict) -> UserExperience:
    title = (form.get("title") or "").strip()
    if not title:
        raise LifecycleError("Title is required.")
    start = _parse_optional_date(form.get("start_date"), "Start date")
    end = _parse_optional_date(form.get("end_date"), "End date")
    if start and end and end < start:
        raise LifecycleError("End date cannot be before start date.")
    exp = UserExperience(
        user_id=user.id,
        title=title,
        company=(form.get("company") or "").strip() or None,
        start_date=start,
        end_date=end,
        description=(form.get("description") or "").strip() or None,
    )
    s.add(exp)
    return exp


def delete_experience(s: Session, user: User, experience_id: int) -> None:
    exp = s.get(UserExperience, experience_id)
    if exp is None or exp.user_id != user.id:
        raise LifecycleError("Experience not found.")
    s.delete(exp)


def list_experiences(s: Session, user_id: int) -> list[UserExperience]:
    return (
        s.query(UserExperience)
        .filter(UserExperience.user_id == user_id)
        .order_by(UserExperience.start_date.desc(), UserExperience.id.desc())
        .all()
    )


def profile_stats(s: Session, user: User) -> dict:
    from app.gigstm.modules.claims.models import Claim
    from app.gigstm.modules.wallet.service import get_wallet

    approved = (
        s.query(func.count(Claim.id)).filter(Claim.user_id == user.id, Claim.status == "approved").scalar() or 0
    )
    total = s.query(func.count(Claim.id)).filter(Claim.user_id == user.id).scalar() or 0
    wallet = get_wallet(s, user.id)
    return {
        "approved_claims": approved,
        "total_claims": total,
        "balance": wallet.balance if wallet else 0,
    }
