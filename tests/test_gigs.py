from decimal import Decimal

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import LifecycleError, PermissionDenied
from app.gigstm.models import User
from app.gigstm.modules.gigs.models import Gig, GigCategory
from app.gigstm.modules.gigs.service import (
    add_question,
    add_review,
    add_training_module,
    can_review,
    gig_reviews,
    parse_pay_amount,
    parse_steps,
    search_gigs,
    set_gig_status,
    toggle_bookmark,
)

from conftest import login, make_gig, make_user


def _new_gig_form(**overrides):
    data = {
        "title": "Mystery shop",
        "description": "Visit the store and report back",
        "pay_amount": "12.50",
        "location": "Manchester",
        "step_title": ["Receipt photo", "Write-up", ""],
        "step_description": ["Photo of the receipt", "", ""],
        "step_proof_type": ["image", "text", "image"],
    }
    data.update(overrides)
    return data


def test_client_creates_gig_with_ordered_steps(app, client, users):
    login(client, "client@example.com")
    r = client.post("/gigs/new", data=_new_gig_form(), follow_redirects=False)
    assert r.status_code == 302

    with session_scope(app) as s:
        gig = s.query(Gig).one()
        assert gig.client_id == users["client"]
        assert gig.status == "active"
        assert Decimal(str(gig.pay_amount)) == Decimal("12.50")
        assert [(st.step_order, st.title, st.required_proof_type) for st in gig.steps] == [
            (1, "Receipt photo", "image"),
            (2, "Write-up", "text"),
        ]

    r = client.get("/gigs/")
    assert b"Mystery shop" in r.data


def test_gig_needs_title_and_a_step(app, client, users):
    login(client, "client@example.com")
    client.post("/gigs/new", data=_new_gig_form(title=""))
    client.post("/gigs/new", data=_new_gig_form(step_title=["", ""]))
    with session_scope(app) as s:
        assert s.query(Gig).count() == 0


def test_worker_cannot_create_gigs(client, users):
    login(client, "worker@example.com")
    assert client.get("/gigs/new").status_code == 403
    assert client.post("/gigs/new", data=_new_gig_form()).status_code == 403


def test_parse_helpers():
    assert parse_pay_amount("7") == Decimal("7.00")
    assert parse_pay_amount("") == Decimal("0.00")
    with pytest.raises(LifecycleError):
        parse_pay_amount("-1")
    with pytest.raises(LifecycleError):
        parse_pay_amount("lots")

    steps = parse_steps(["A", " ", "B"], ["desc", "", ""], ["text", "image", "file"])
    assert steps == [
        {"title": "A", "description": "desc", "required_proof_type": "text"},
        {"title": "B", "description": None, "required_proof_type": "file"},
    ]
    with pytest.raises(LifecycleError):
        parse_steps(["A"], [""], ["video"])


def test_search_filters_text_category_and_closed(db):
    owner = make_user(db, "c@example.com", "client")
    cat = GigCategory(name="Retail")
    db.add(cat)
    db.flush()
    a = make_gig(db, owner, title="Shelf audit")
    b = make_gig(db, owner, title="Price check")
    b.category_id = cat.id
    c = make_gig(db, owner, title="Closed audit")
    set_gig_status(db, owner, c, "closed")
    db.flush()

    assert {g.id for g in search_gigs(db)} == {a.id, b.id}
    assert [g.id for g in search_gigs(db, q="audit")] == [a.id]
    assert [g.id for g in search_gigs(db, category_id=cat.id)] == [b.id]
    assert {g.id for g in search_gigs(db, q="audit", include_closed=True)} == {a.id, c.id}


def test_bookmark_toggle_and_filter(db):
    owner = make_user(db, "c@example.com", "client")
    worker = make_user(db, "w@example.com")
    gig = make_gig(db, owner)
    other = make_gig(db, owner, title="Other")

    assert toggle_bookmark(db, worker, gig) is True
    db.flush()
    assert [g.id for g in search_gigs(db, bookmarked_by=worker.id)] == [gig.id]

    assert toggle_bookmark(db, worker, gig) is False
    db.flush()
    assert search_gigs(db, bookmarked_by=worker.id) == []
    assert other.id in {g.id for g in search_gigs(db)}


def test_only_owner_or_staff_manage_gig(db):
    owner = make_user(db, "c@example.com", "client")
    stranger = make_user(db, "c2@example.com", "client")
    manager = make_user(db, "m@example.com", "manager")
    gig = make_gig(db, owner)

    with pytest.raises(PermissionDenied):
        set_gig_status(db, stranger, gig, "closed")
    with pytest.raises(PermissionDenied):
        add_question(db, stranger, gig, question="Q?", options=["a", "b"], correct_index=0)

    set_gig_status(db, manager, gig, "closed")
    assert gig.status == "closed"
    set_gig_status(db, owner, gig, "active")
    assert gig.status == "active"


def test_add_question_validation(db):
    owner = make_user(db, "c@example.com", "client")
    gig = make_gig(db, owner)
    with pytest.raises(LifecycleError):
        add_question(db, owner, gig, question="", options=["a", "b"], correct_index=0)
    with pytest.raises(LifecycleError):
        add_question(db, owner, gig, question="Q?", options=["only", "  "], correct_index=0)
    with pytest.raises(LifecycleError):
        add_question(db, owner, gig, question="Q?", options=["a", "b"], correct_index=2)

    q = add_question(db, owner, gig, question="Q?", options=["a", "b", ""], correct_index=1)
    assert q.options == ["a", "b"]
    assert gig.questions == [q]


def test_training_modules_are_numbered(db):
    owner = make_user(db, "c@example.com", "client")
    gig = make_gig(db, owner)
    m1 = add_training_module(db, owner, gig, title="Intro", content="Read this", training_title="Basics")
    m2 = add_training_module(db, owner, gig, title="Safety", content="And this")
    assert gig.training.title == "Basics"
    assert (m1.module_order, m2.module_order) == (1, 2)


def test_reviews_require_completed_work(db):
    owner = make_user(db, "c@example.com", "client")
    worker = make_user(db, "w@example.com")
    gig = make_gig(db, owner)
    assert can_review(db, worker, gig) is False
    with pytest.raises(PermissionDenied):
        add_review(db, worker, gig, rating=5, comment="Great")
    with pytest.raises(LifecycleError):
        add_review(db, worker, gig, rating=9, comment="Off the scale")
    assert gig_reviews(db, gig.id) == ([], None)


def test_manage_page_and_status_change(app, client, users):
    with session_scope(app) as s:
        gig_id = make_gig(s, s.get(User, users["client"])).id

    login(client, "client@example.com")
    assert client.get(f"/gigs/{gig_id}/manage").status_code == 200
    client.post(f"/gigs/{gig_id}/status", data={"status": "closed"})
    client.post(
        f"/gigs/{gig_id}/questions",
        data={"question": "Colour of the sky?", "option": ["Blue", "Green"], "correct_index": "0"},
    )
    client.post(f"/gigs/{gig_id}/training-modules", data={"title": "Intro", "content": "Welcome"})

    with session_scope(app) as s:
        gig = s.get(Gig, gig_id)
        assert gig.status == "closed"
        assert len(gig.questions) == 1
        assert gig.training is not None

    client.get("/auth/logout")
    with session_scope(app) as s:
        make_user(s, "stranger@example.com", "client")
    login(client, "stranger@example.com")
    assert client.get(f"/gigs/{gig_id}/manage").status_code == 403


def test_detail_page_and_bookmark_http(app, client, users):
    with session_scope(app) as s:
        gig_id = make_gig(s, s.get(User, users["client"])).id

    login(client, "worker@example.com")
    r = client.get(f"/gigs/{gig_id}")
    assert r.status_code == 200
    assert b"Shelf audit" in r.data

    client.post(f"/gigs/{gig_id}/bookmark")
    r = client.get("/gigs/?bookmarked=1")
    assert b"Shelf audit" in r.data
