from datetime import datetime

import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import (
    APPLICATION,
    CLAIM,
    GIG,
    SUPPORT_TICKET,
    ConcurrentTransitionError,
    TransitionError,
    transition,
)
from app.gigstm.models import User
from app.gigstm.modules.gigs.models import Gig

from conftest import make_gig, make_user


def test_tables_match_the_documented_flows():
    assert APPLICATION.can("pending", "testing")
    assert APPLICATION.can("testing", "training")
    assert APPLICATION.can("training", "accepted")
    assert not APPLICATION.can("rejected", "accepted")
    assert APPLICATION.is_terminal("accepted")

    assert CLAIM.can("rejected", "disputed")
    assert CLAIM.can("disputed", "approved")
    assert not CLAIM.can("approved", "rejected")
    assert not CLAIM.can("pending", "disputed")

    assert SUPPORT_TICKET.can("closed", "open")
    assert GIG.next_statuses("active") == frozenset({"closed"})


def test_check_rejects_unknown_and_illegal_moves():
    with pytest.raises(TransitionError):
        CLAIM.check("approved", "rejected")
    with pytest.raises(TransitionError):
        CLAIM.check("bogus", "approved")


def test_transition_updates_row_and_returns_previous_status(db):
    owner = make_user(db, "c@example.com", "client")
    gig = make_gig(db, owner)
    db.commit()

    previous = transition(db, gig, GIG, "closed")
    db.commit()

    assert previous == "active"
    assert gig.status == "closed"
    assert db.get(Gig, gig.id).status == "closed"


def test_transition_refreshes_extra_columns_in_session(db):
    owner = make_user(db, "c@example.com", "client")
    gig = make_gig(db, owner)
    db.commit()

    stamp = datetime(2030, 1, 2, 3, 4, 5)
    transition(db, gig, GIG, "closed", updated_at=stamp)
    assert gig.status == "closed"
    assert gig.updated_at == stamp

    db.commit()
    assert gig.updated_at == stamp


def test_illegal_transition_leaves_row_alone(db):
    owner = make_user(db, "c@example.com", "client")
    gig = make_gig(db, owner)
    db.commit()

    with pytest.raises(TransitionError):
        transition(db, gig, GIG, "archived")
    db.rollback()
    assert db.get(Gig, gig.id).status == "active"


def test_stale_transition_is_refused(app):
    with session_scope(app) as s:
        owner = make_user(s, "c@example.com", "client")
        gig_id = make_gig(s, owner).id
        owner_id = owner.id

    sm = app.extensions["sqlalchemy_sessionmaker"]
    first = sm()
    second = sm()
    try:
        stale = first.get(Gig, gig_id)
        assert stale.status == "active"

        fresh = second.get(Gig, gig_id)
        transition(second, fresh, GIG, "closed")
        second.commit()

        # `first` still believes the gig is active.
        with pytest.raises(ConcurrentTransitionError):
            transition(first, stale, GIG, "closed")
        first.rollback()
    finally:
        first.close()
        second.close()

    with session_scope(app) as s:
        assert s.get(Gig, gig_id).status == "closed"
        assert s.get(User, owner_id) is not None
