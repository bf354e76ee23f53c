from decimal import Decimal

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import LifecycleError, PermissionDenied, TransitionError
from app.gigstm.models import User
from app.gigstm.modules.applications.service import apply, cancel_work_order, review_application
from app.gigstm.modules.claims.models import Claim
from app.gigstm.modules.claims.service import review_claim, submit_claim
from app.gigstm.modules.disputes.models import Dispute
from app.gigstm.modules.disputes.service import queue, raise_dispute, resolve_dispute
from app.gigstm.modules.wallet.models import Transaction
from app.gigstm.modules.wallet.service import get_wallet

from conftest import login, make_gig, make_user


def _rejected_claim(s, worker, manager, client_user, pay="5.00"):
    gig = make_gig(s, client_user, pay=pay)
    application = apply(s, gig, worker)
    review_application(s, application, "accepted", manager)
    s.flush()
    claim = submit_claim(s, application.work_order, gig.steps[1], worker, text="done")
    review_claim(s, claim, "rejected", manager, "Not enough detail")
    return claim


@pytest.fixture()
def people(db):
    return {
        "client": make_user(db, "c@example.com", "client"),
        "worker": make_user(db, "w@example.com"),
        "manager": make_user(db, "m@example.com", "manager"),
    }


def _balance(db, user_id) -> Decimal:
    db.flush()
    return Decimal(str(get_wallet(db, user_id).balance))


def test_raise_dispute_moves_claim_to_disputed(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"])
    dispute = raise_dispute(db, claim, people["worker"], "I described every shelf")
    db.flush()

    assert dispute.status == "open"
    assert claim.status == "disputed"
    assert queue(db) == [dispute]


def test_dispute_guards(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"])

    with pytest.raises(LifecycleError):
        raise_dispute(db, claim, people["worker"], "   ")
    with pytest.raises(PermissionDenied):
        raise_dispute(db, claim, make_user(db, "w2@example.com"), "Not mine")

    raise_dispute(db, claim, people["worker"], "Please look again")
    db.flush()
    with pytest.raises(LifecycleError):
        raise_dispute(db, claim, people["worker"], "Twice")


def test_only_rejected_claims_can_be_disputed(db, people):
    gig = make_gig(db, people["client"])
    application = apply(db, gig, people["worker"])
    review_application(db, application, "accepted", people["manager"])
    db.flush()
    claim = submit_claim(db, application.work_order, gig.steps[1], people["worker"], text="done")

    with pytest.raises(TransitionError):
        raise_dispute(db, claim, people["worker"], "Still pending")


def test_resolving_in_favour_pays_the_worker(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"], pay="7.25")
    dispute = raise_dispute(db, claim, people["worker"], "Please look again")
    before = _balance(db, people["worker"].id)

    with pytest.raises(LifecycleError):
        resolve_dispute(db, dispute, "resolved", "  ", people["manager"])

    resolve_dispute(db, dispute, "resolved", "Detail was sufficient", people["manager"])
    db.flush()
    assert dispute.status == "resolved"
    assert dispute.resolved_by_user_id == people["manager"].id
    assert claim.status == "approved"
    assert _balance(db, people["worker"].id) - before == Decimal("7.25")
    assert db.query(Transaction).filter(Transaction.reference_type == "claim", Transaction.reference_id == claim.id).count() == 1

    with pytest.raises(TransitionError):
        resolve_dispute(db, dispute, "closed", "Changed my mind", people["manager"])


def test_closing_upholds_the_rejection(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"])
    dispute = raise_dispute(db, claim, people["worker"], "Please look again")

    resolve_dispute(db, dispute, "closed", "Rejection stands", people["manager"])
    db.flush()
    assert dispute.status == "closed"
    assert claim.status == "rejected"
    assert _balance(db, people["worker"].id) == Decimal("0.00")
    assert queue(db) == []
    assert queue(db, "closed") == [dispute]


def test_cancelled_work_order_blocks_a_paying_resolution(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"])
    dispute = raise_dispute(db, claim, people["worker"], "Please look again")
    cancel_work_order(db, claim.work_order, people["manager"], "Store closed")

    with pytest.raises(TransitionError):
        resolve_dispute(db, dispute, "resolved", "Detail was sufficient", people["manager"])
    assert dispute.status == "open"
    assert _balance(db, people["worker"].id) == Decimal("0.00")

    resolve_dispute(db, dispute, "closed", "Work order was cancelled", people["manager"])
    assert claim.status == "rejected"


def test_unknown_outcome_is_refused(db, people):
    claim = _rejected_claim(db, people["worker"], people["manager"], people["client"])
    dispute = raise_dispute(db, claim, people["worker"], "Please look again")
    with pytest.raises(TransitionError):
        resolve_dispute(db, dispute, "approved", "Fine", people["manager"])


def test_dispute_flow_over_http(app, client, users):
    with session_scope(app) as s:
        claim_id = _rejected_claim(
            s,
            s.get(User, users["worker"]),
            s.get(User, users["manager"]),
            s.get(User, users["client"]),
        ).id

    login(client, "worker@example.com")
    assert client.get(f"/disputes/new/{claim_id}").status_code == 200
    r = client.post(f"/disputes/new/{claim_id}", data={"reason": "I did the work"}, follow_redirects=False)
    assert r.status_code == 302
    assert b"Shelf audit" in client.get("/disputes/").data

    with session_scope(app) as s:
        dispute_id = s.query(Dispute).one().id

    client.get("/auth/logout")
    login(client, "manager@example.com", staff=True)
    assert client.get("/disputes/queue").status_code == 200
    assert client.get("/disputes/queue?status=all").status_code == 200
    assert client.get(f"/disputes/{dispute_id}").status_code == 200
    client.post(f"/disputes/{dispute_id}/resolve", data={"outcome": "resolved", "resolution": "Agreed"})

    with session_scope(app) as s:
        assert s.get(Dispute, dispute_id).status == "resolved"
        assert s.get(Claim, claim_id).status == "approved"


def test_workers_cannot_dispute_someone_elses_claim(app, client, users):
    with session_scope(app) as s:
        claim_id = _rejected_claim(
            s,
            s.get(User, users["worker"]),
            s.get(User, users["manager"]),
            s.get(User, users["client"]),
        ).id

    login(client, "worker2@example.com")
    assert client.get(f"/disputes/new/{claim_id}").status_code == 404
