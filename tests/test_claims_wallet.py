import io
from decimal import Decimal

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import LifecycleError, PermissionDenied, TransitionError
from app.gigstm.models import User
from app.gigstm.modules.applications.service import apply, cancel_work_order, review_application
from app.gigstm.modules.claims.models import Claim
from app.gigstm.modules.claims.service import pending_claims, review_claim, submit_claim
from app.gigstm.modules.profiles.models import Referral
from app.gigstm.modules.wallet.models import Transaction
from app.gigstm.modules.wallet.service import get_wallet
from app.gigstm.storage import LocalStorage

from conftest import login, make_gig, make_user

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _image(name="shelf.png"):
    return {"filename": name, "content_type": "image/png", "data": PNG}


@pytest.fixture()
def work(db, tmp_path):
    client_user = make_user(db, "c@example.com", "client")
    worker = make_user(db, "w@example.com")
    manager = make_user(db, "m@example.com", "manager")
    gig = make_gig(db, client_user, pay="5.00")
    application = apply(db, gig, worker)
    review_application(db, application, "accepted", manager)
    db.flush()
    return {
        "worker": worker,
        "manager": manager,
        "gig": gig,
        "wo": application.work_order,
        "image_step": gig.steps[0],
        "text_step": gig.steps[1],
        "storage": LocalStorage(tmp_path / "blobs"),
    }


def _balance(db, user_id) -> Decimal:
    db.flush()
    return Decimal(str(get_wallet(db, user_id).balance))


def test_text_step_needs_text(db, work):
    with pytest.raises(LifecycleError):
        submit_claim(db, work["wo"], work["text_step"], work["worker"], text="   ")
    claim = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="All shelves stocked")
    assert claim.status == "pending"
    assert claim.submission_text == "All shelves stocked"


def test_image_step_needs_an_image(db, work):
    with pytest.raises(LifecycleError):
        submit_claim(db, work["wo"], work["image_step"], work["worker"], text="no photo")
    with pytest.raises(LifecycleError):
        submit_claim(
            db,
            work["wo"],
            work["image_step"],
            work["worker"],
            upload={"filename": "notes.txt", "content_type": "text/plain", "data": b"hello"},
            storage=work["storage"],
        )

    claim = submit_claim(db, work["wo"], work["image_step"], work["worker"], upload=_image(), storage=work["storage"])
    db.flush()
    assert len(claim.media) == 1
    media = claim.media[0]
    assert media.media_type == "image"
    assert media.size_bytes == len(PNG)
    assert work["storage"].exists(media.storage_key)


def test_one_claim_per_step(db, work):
    submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")
    with pytest.raises(LifecycleError):
        submit_claim(db, work["wo"], work["text_step"], work["worker"], text="again")


def test_only_the_assignee_can_submit(db, work):
    other = make_user(db, "w2@example.com")
    with pytest.raises(PermissionDenied):
        submit_claim(db, work["wo"], work["text_step"], other, text="mine now")


def test_step_from_another_gig_is_refused(db, work):
    other_gig = make_gig(db, make_user(db, "c2@example.com", "client"), title="Other")
    with pytest.raises(LifecycleError):
        submit_claim(db, work["wo"], other_gig.steps[1], work["worker"], text="wrong gig")


def test_approval_credits_exactly_the_pay_amount(db, work):
    claim = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")
    before = _balance(db, work["worker"].id)

    review_claim(db, claim, "approved", work["manager"], "Looks good")
    assert claim.status == "approved"
    assert _balance(db, work["worker"].id) - before == Decimal("5.00")

    credits = db.query(Transaction).filter(Transaction.reference_type == "claim", Transaction.reference_id == claim.id).all()
    assert len(credits) == 1
    assert credits[0].transaction_type == "credit"
    assert Decimal(str(credits[0].amount)) == Decimal("5.00")
    assert [v.status for v in claim.verifications] == ["approved"]

    with pytest.raises(TransitionError):
        review_claim(db, claim, "rejected", work["manager"])
    assert _balance(db, work["worker"].id) - before == Decimal("5.00")


def test_rejection_pays_nothing(db, work):
    claim = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")
    review_claim(db, claim, "rejected", work["manager"], "Blurry")
    assert claim.status == "rejected"
    assert claim.reviewer_remarks == "Blurry"
    assert _balance(db, work["worker"].id) == Decimal("0.00")


def test_work_order_completes_when_every_step_is_approved(db, work):
    c1 = submit_claim(db, work["wo"], work["image_step"], work["worker"], upload=_image(), storage=work["storage"])
    c2 = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")

    review_claim(db, c1, "approved", work["manager"])
    assert work["wo"].status == "active"
    review_claim(db, c2, "approved", work["manager"])
    assert work["wo"].status == "completed"
    assert work["wo"].completed_at is not None
    assert _balance(db, work["worker"].id) == Decimal("10.00")

    # No more proof on a finished work order.
    with pytest.raises(TransitionError):
        submit_claim(db, work["wo"], work["text_step"], work["worker"], text="late")


def test_cancelled_work_order_claims_are_not_paid(db, work):
    claim = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")
    assert pending_claims(db) == [claim]

    cancel_work_order(db, work["wo"], work["manager"], "fraud suspected")
    assert work["wo"].cancel_reason == "fraud suspected"
    assert pending_claims(db) == []

    with pytest.raises(TransitionError):
        review_claim(db, claim, "approved", work["manager"])
    assert claim.status == "pending"
    assert _balance(db, work["worker"].id) == Decimal("0.00")
    assert db.query(Transaction).filter(Transaction.transaction_type == "credit").count() == 0


def test_unpaid_gig_approval_writes_no_ledger_row(db):
    client_user = make_user(db, "c@example.com", "client")
    worker = make_user(db, "w@example.com")
    manager = make_user(db, "m@example.com", "manager")
    gig = make_gig(db, client_user, pay="0.00", steps=[{"title": "Notes", "description": None, "required_proof_type": "text"}])
    application = apply(db, gig, worker)
    review_application(db, application, "accepted", manager)
    db.flush()

    claim = submit_claim(db, application.work_order, gig.steps[0], worker, text="done")
    review_claim(db, claim, "approved", manager)
    assert claim.status == "approved"
    assert application.work_order.status == "completed"
    assert _balance(db, worker.id) == Decimal("0.00")
    assert db.query(Transaction).count() == 0


def test_first_approved_claim_pays_the_referrer_once(db, work):
    referrer = make_user(db, "friend@example.com")
    db.add(Referral(referrer_id=referrer.id, referred_id=work["worker"].id, status="pending"))
    db.flush()

    c1 = submit_claim(db, work["wo"], work["image_step"], work["worker"], upload=_image(), storage=work["storage"])
    c2 = submit_claim(db, work["wo"], work["text_step"], work["worker"], text="done")
    review_claim(db, c1, "approved", work["manager"])
    review_claim(db, c2, "approved", work["manager"])

    assert _balance(db, referrer.id) == Decimal("10.00")
    ref = db.query(Referral).one()
    assert ref.status == "completed"
    assert Decimal(str(ref.bonus_amount)) == Decimal("10.00")


def test_proof_submission_and_review_over_http(app, client, users):
    with session_scope(app) as s:
        gig = make_gig(s, s.get(User, users["client"]))
        application = apply(s, gig, s.get(User, users["worker"]))
        review_application(s, application, "accepted", s.get(User, users["manager"]))
        s.flush()
        wo_id = application.work_order.id
        image_step_id, text_step_id = gig.steps[0].id, gig.steps[1].id

    login(client, "worker@example.com")
    r = client.post(
        f"/applications/work-orders/{wo_id}/steps/{image_step_id}",
        data={"file": (io.BytesIO(PNG), "shelf.png", "image/png")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 302
    client.post(f"/applications/work-orders/{wo_id}/steps/{text_step_id}", data={"text": "Counted 40 items"})

    with session_scope(app) as s:
        claims = {c.gig_step_id: c for c in s.query(Claim).all()}
        assert set(claims) == {image_step_id, text_step_id}
        media_id = claims[image_step_id].media[0].id
        text_claim_id = claims[text_step_id].id

    r = client.get(f"/applications/claim-media/{media_id}")
    assert r.status_code == 200
    assert r.data == PNG

    client.get("/auth/logout")
    login(client, "manager@example.com", staff=True)
    assert client.get(f"/applications/claim-media/{media_id}").status_code == 200
    client.post(f"/manager/claims/{text_claim_id}/review", data={"decision": "approved", "remarks": "ok"})

    client.get("/auth/logout")
    login(client, "worker2@example.com")
    assert client.get(f"/applications/claim-media/{media_id}").status_code == 403

    with session_scope(app) as s:
        assert s.get(Claim, text_claim_id).status == "approved"
        assert Decimal(str(get_wallet(s, users["worker"]).balance)) == Decimal("5.00")
