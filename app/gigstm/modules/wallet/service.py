"""
Wallet ledger.

Balances only move through ``credit()`` and ``debit()``, which issue a single
arithmetic UPDATE so concurrent credits cannot overwrite each other, and append
one Transaction row per movement.
"""
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.gigstm.audit import record_event
from app.gigstm.lifecycle import WITHDRAW_REQUEST, InsufficientFunds, LifecycleError, TransitionError, transition
from app.gigstm.models import User
from app.gigstm.modules.notifications.service import notify, notify_staff

from .models import Transaction, Wallet, WithdrawRequest

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(raw) -> Decimal:
    """Parse user input into a positive 2-place Decimal."""
    try:
        amount = Decimal(str(raw).strip()).quantize(CENT)
    except (InvalidOperation, ValueError):
        raise LifecycleError("Enter a valid amount.")
    if not amount.is_finite() or amount <= 0:
        raise LifecycleError("Amount must be greater than zero.")
    return amount


def get_wallet(s: Session, user_id: int) -> Wallet | None:
    return s.query(Wallet).filter(Wallet.user_id == user_id).one_or_none()


def ensure_wallet(s: Session, user_id: int) -> Wallet:
    wallet = get_wallet(s, user_id)
    if wallet is None:
        wallet = Wallet(user_id=user_id, balance=Decimal("0.00"))
        s.add(wallet)
        s.flush()
    return wallet


def credit(
    s: Session,
    user_id: int,
    amount: Decimal,
    *,
    description: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> Transaction:
    wallet = ensure_wallet(s, user_id)
    s.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id)
        .values(balance=Wallet.balance + amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    s.expire(wallet, ["balance", "updated_at"])
    txn = Transaction(
        wallet_id=wallet.id,
        amount=amount,
        transaction_type="credit",
        status="completed",
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    s.add(txn)
    logger.info("Wallet %s credited %s (%s %s)", wallet.id, amount, reference_type, reference_id)
    return txn


def debit(
    s: Session,
    user_id: int,
    amount: Decimal,
    *,
    description: str,
    reference_type: str | None = None,
    reference_id: int | None = None,
) -> Transaction:
    wallet = ensure_wallet(s, user_id)
    result = s.execute(
        update(Wallet)
        .where(Wallet.id == wallet.id, Wallet.balance >= amount)
        .values(balance=Wallet.balance - amount, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("Wallet %s debit of %s refused: insufficient balance", wallet.id, amount)
        raise InsufficientFunds("Insufficient wallet balance.")
    s.expire(wallet, ["balance", "updated_at"])
    txn = Transaction(
        wallet_id=wallet.id,
        amount=amount,
        transaction_type="debit",
        status="completed",
        description=description,
        reference_type=reference_type,
        reference_id=reference_id,
    )
    s.add(txn)
    logger.info("Wallet %s debited %s (%s %s)", wallet.id, amount, reference_type, reference_id)
    return txn


def pending_withdrawals_total(s: Session, user_id: int) -> Decimal:
    total = (
        s.query(func.coalesce(func.sum(WithdrawRequest.amount), 0))
        .filter(WithdrawRequest.user_id == user_id, WithdrawRequest.status == "pending")
        .scalar()
    )
    return Decimal(str(total or 0)).quantize(CENT)


def available_balance(s: Session, user_id: int) -> Decimal:
    wallet = get_wallet(s, user_id)
    balance = Decimal(str(wallet.balance)) if wallet else Decimal("0.00")
    return (balance - pending_withdrawals_total(s, user_id)).quantize(CENT)


def list_transactions(s: Session, user_id: int, limit: int = 100) -> list[Transaction]:
    wallet = get_wallet(s, user_id)
    if wallet is None:
        return []
    return (
        s.query(Transaction)
        .filter(Transaction.wallet_id == wallet.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(limit)
        .all()
    )


def request_withdrawal(s: Session, user: User, amount: Decimal) -> WithdrawRequest:
    if amount <= 0:
        raise LifecycleError("Amount must be greater than zero.")
    available = available_balance(s, user.id)
    if amount > available:
        raise InsufficientFunds(f"Amount exceeds available balance ({available}).")

    req = WithdrawRequest(user_id=user.id, amount=amount, status=WITHDRAW_REQUEST.initial)
    s.add(req)
    s.flush()
    record_event(
        s,
        actor=user,
        action="wallet.withdraw_request",
        entity_type="WithdrawRequest",
        entity_id=str(req.id),
        metadata={"amount": str(amount)},
    )
    notify_staff(
        s,
        "New withdrawal request",
        f"{user.display_name} requested a withdrawal of ${amount}.",
        link="/admin/payouts",
    )
    return req


def process_withdrawal(
    s: Session,
    req: WithdrawRequest,
    decision: str,
    admin: User,
    remarks: str | None = None,
) -> WithdrawRequest:
    if decision not in ("approved", "rejected"):
        raise TransitionError(f"Unknown decision: {decision}")
    remarks = (remarks or "").strip() or None

    transition(
        s,
        req,
        WITHDRAW_REQUEST,
        decision,
        remarks=remarks,
        processed_by_user_id=admin.id,
        processed_at=datetime.utcnow(),
    )
    if decision == "approved":
        debit(
            s,
            req.user_id,
            Decimal(str(req.amount)),
            description=f"Withdrawal #{req.id}",
            reference_type="withdraw_request",
            reference_id=req.id,
        )
        notify(
            s,
            req.user_id,
            "Withdrawal approved",
            f"Your withdrawal of ${req.amount} has been approved.",
            type="success",
            link="/wallet",
        )
    else:
        notify(
            s,
            req.user_id,
            "Withdrawal rejected",
            f"Your withdrawal of ${req.amount} was rejected." + (f" {remarks}" if remarks else ""),
            type="error",
            link="/wallet",
        )

    record_event(
        s,
        actor=admin,
        action=f"wallet.withdraw_{decision}",
        entity_type="WithdrawRequest",
        entity_id=str(req.id),
        reason=remarks,
        metadata={"amount": str(req.amount), "user_id": req.user_id},
    )
    return req
