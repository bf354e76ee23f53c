from decimal import Decimal

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import InsufficientFunds, LifecycleError, TransitionError
from app.gigstm.modules.wallet.models import Transaction, WithdrawRequest
from app.gigstm.modules.wallet.service import (
    available_balance,
    credit,
    debit,
    get_wallet,
    process_withdrawal,
    request_withdrawal,
    to_money,
)

from conftest import login, make_user


@pytest.fixture()
def funded(db):
    worker = make_user(db, "w@example.com")
    admin = make_user(db, "a@example.com", "admin")
    credit(db, worker.id, Decimal("20.00"), description="Seed", reference_type="claim", reference_id=1)
    db.flush()
    return worker, admin


def _balance(db, user_id) -> Decimal:
    db.flush()
    return Decimal(str(get_wallet(db, user_id).balance))


def test_to_money_parses_and_validates():
    assert to_money("12.345") == Decimal("12.34")
    assert to_money(" 3 ") == Decimal("3.00")
    for bad in ("", "abc", "0", "-5", "NaN"):
        with pytest.raises(LifecycleError):
            to_money(bad)


def test_debit_never_goes_negative(db, funded):
    worker, _ = funded
    with pytest.raises(InsufficientFunds):
        debit(db, worker.id, Decimal("20.01"), description="Too much")
    assert _balance(db, worker.id) == Decimal("20.00")

    debit(db, worker.id, Decimal("20.00"), description="All of it")
    assert _balance(db, worker.id) == Decimal("0.00")


def test_pending_requests_reduce_available_balance(db, funded):
    worker, _ = funded
    request_withdrawal(db, worker, Decimal("15.00"))
    db.flush()
    assert available_balance(db, worker.id) == Decimal("5.00")
    # Balance itself is untouched until an admin approves.
    assert _balance(db, worker.id) == Decimal("20.00")

    with pytest.raises(InsufficientFunds):
        request_withdrawal(db, worker, Decimal("6.00"))
    request_withdrawal(db, worker, Decimal("5.00"))
    db.flush()
    assert available_balance(db, worker.id) == Decimal("0.00")


def test_approval_debits_once(db, funded):
    worker, admin = funded
    req = request_withdrawal(db, worker, Decimal("8.00"))
    process_withdrawal(db, req, "approved", admin, "Sent by bank transfer")
    db.flush()

    assert req.status == "approved"
    assert req.processed_by_user_id == admin.id
    assert _balance(db, worker.id) == Decimal("12.00")
    debits = db.query(Transaction).filter(Transaction.transaction_type == "debit").all()
    assert len(debits) == 1
    assert debits[0].reference_id == req.id

    with pytest.raises(TransitionError):
        process_withdrawal(db, req, "approved", admin)
    assert _balance(db, worker.id) == Decimal("12.00")


def test_rejection_keeps_the_balance(db, funded):
    worker, admin = funded
    req = request_withdrawal(db, worker, Decimal("8.00"))
    process_withdrawal(db, req, "rejected", admin, "Verify your identity first")
    db.flush()
    assert req.status == "rejected"
    assert req.remarks == "Verify your identity first"
    assert _balance(db, worker.id) == Decimal("20.00")
    assert available_balance(db, worker.id) == Decimal("20.00")


def test_unknown_decision_is_refused(db, funded):
    worker, admin = funded
    req = request_withdrawal(db, worker, Decimal("1.00"))
    with pytest.raises(TransitionError):
        process_withdrawal(db, req, "maybe", admin)


def test_withdrawal_over_http(app, client, users):
    with session_scope(app) as s:
        credit(s, users["worker"], Decimal("30.00"), description="Seed")

    login(client, "worker@example.com")
    client.post("/wallet/withdraw", data={"amount": "50"})
    client.post("/wallet/withdraw", data={"amount": "25.50"})
    r = client.get("/wallet")
    assert b"$30.00" in r.data
    assert b"$4.50" in r.data

    with session_scope(app) as s:
        reqs = s.query(WithdrawRequest).all()
        assert [Decimal(str(r.amount)) for r in reqs] == [Decimal("25.50")]
        req_id = reqs[0].id

    client.get("/auth/logout")
    login(client, "admin@example.com", staff=True)
    assert client.get("/admin/payouts").status_code == 200
    client.post(f"/admin/payouts/{req_id}", data={"decision": "approved", "remarks": "Paid"})

    with session_scope(app) as s:
        assert s.get(WithdrawRequest, req_id).status == "approved"
        assert Decimal(str(get_wallet(s, users["worker"]).balance)) == Decimal("4.50")


def test_approval_without_funds_rolls_back(db, funded):
    worker, admin = funded
    req = request_withdrawal(db, worker, Decimal("15.00"))
    debit(db, worker.id, Decimal("10.00"), description="Chargeback")
    db.commit()

    with pytest.raises(InsufficientFunds):
        process_withdrawal(db, req, "approved", admin, "Paid")
    db.rollback()

    assert db.get(WithdrawRequest, req.id).status == "pending"
    assert _balance(db, worker.id) == Decimal("10.00")
    assert db.query(Transaction).filter(Transaction.reference_type == "withdraw_request").count() == 0


def test_payout_approval_without_funds_over_http(app, client, users):
    with session_scope(app) as s:
        credit(s, users["worker"], Decimal("30.00"), description="Seed")

    login(client, "worker@example.com")
    client.post("/wallet/withdraw", data={"amount": "25.50"})
    with session_scope(app) as s:
        req_id = s.query(WithdrawRequest).one().id
        debit(s, users["worker"], Decimal("10.00"), description="Chargeback")

    client.get("/auth/logout")
    login(client, "admin@example.com", staff=True)
    r = client.post(f"/admin/payouts/{req_id}", data={"decision": "approved"}, follow_redirects=True)
    assert b"Insufficient wallet balance." in r.data

    with session_scope(app) as s:
        req = s.get(WithdrawRequest, req_id)
        assert req.status == "pending"
        assert req.processed_by_user_id is None
        assert Decimal(str(get_wallet(s, users["worker"]).balance)) == Decimal("20.00")
        assert s.query(Transaction).filter(Transaction.transaction_type == "debit").count() == 1
