import pytest

from app.gigstm.db import session_scope
from app.gigstm.lifecycle import LifecycleError, PermissionDenied
from app.gigstm.models import User
from app.gigstm.modules.notifications.models import Message, Notification
from app.gigstm.modules.notifications.service import (
    conversation_partners,
    mark_all_read,
    notify,
    notify_staff,
    open_thread,
    send_message,
    unread_message_count,
    unread_notification_count,
)

from conftest import login, make_user


def test_notify_and_unread_counts(db):
    user = make_user(db, "w@example.com")
    notify(db, user.id, "Hello", "First")
    notify(db, user.id, "Again", "Second", type="not-a-type", link="/wallet")
    db.flush()

    assert unread_notification_count(db, user.id) == 2
    odd = db.query(Notification).filter(Notification.title == "Again").one()
    assert odd.type == "info"

    assert mark_all_read(db, user) == 2
    assert unread_notification_count(db, user.id) == 0


def test_notify_staff_reaches_active_managers_and_admins_only(db):
    make_user(db, "w@example.com")
    manager = make_user(db, "m@example.com", "manager")
    admin = make_user(db, "a@example.com", "admin")
    gone = make_user(db, "gone@example.com", "manager")
    gone.status = "suspended"
    db.flush()

    assert notify_staff(db, "Heads up", "Something happened") == 2
    db.flush()
    recipients = {n.user_id for n in db.query(Notification).all()}
    assert recipients == {manager.id, admin.id}


def test_send_message_rules(db):
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")

    with pytest.raises(LifecycleError):
        send_message(db, alice, bob.id, "   ")
    with pytest.raises(PermissionDenied):
        send_message(db, alice, alice.id, "Hi me")
    with pytest.raises(LifecycleError):
        send_message(db, alice, 999999, "Anyone there?")

    msg = send_message(db, alice, bob.id, " Hi Bob ")
    assert msg.content == "Hi Bob"


def test_threads_mark_received_messages_read(db):
    alice = make_user(db, "alice@example.com")
    bob = make_user(db, "bob@example.com")
    send_message(db, alice, bob.id, "One")
    send_message(db, alice, bob.id, "Two")
    send_message(db, bob, alice.id, "Reply")
    db.flush()

    assert unread_message_count(db, bob.id) == 2
    partners = conversation_partners(db, bob)
    assert len(partners) == 1
    assert partners[0]["user"].id == alice.id
    assert partners[0]["unread"] == 2

    thread = open_thread(db, bob, alice.id)
    assert [m.content for m in thread] == ["One", "Two", "Reply"]
    assert unread_message_count(db, bob.id) == 0
    # Alice's copy of Bob's reply is still unread.
    assert unread_message_count(db, alice.id) == 1


def test_notification_pages_over_http(app, client, users):
    with session_scope(app) as s:
        notify(s, users["worker"], "Claim approved", "Paid", link="/wallet")
        notify(s, users["worker2"], "Not yours", "Private")
        s.flush()
        own_id = s.query(Notification).filter(Notification.user_id == users["worker"]).one().id
        other_id = s.query(Notification).filter(Notification.user_id == users["worker2"]).one().id

    login(client, "worker@example.com")
    assert client.get("/notifications/unread-count").json == {"count": 1}
    assert b"Claim approved" in client.get("/notifications").data

    assert client.post(f"/notifications/{other_id}/read").status_code == 404
    r = client.post(f"/notifications/{own_id}/read", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/wallet")
    assert client.get("/notifications/unread-count").json == {"count": 0}

    client.post(f"/notifications/{own_id}/delete")
    with session_scope(app) as s:
        assert s.get(Notification, own_id) is None


def test_messages_over_http(app, client, users):
    login(client, "worker@example.com")
    r = client.post("/messages/new", data={"email": "manager@example.com"}, follow_redirects=False)
    assert r.headers["Location"].endswith(f"/messages/{users['manager']}")
    client.post(f"/messages/{users['manager']}", data={"content": "Is my claim OK?"})

    client.get("/auth/logout")
    login(client, "manager@example.com", staff=True)
    assert client.get("/messages/unread-count").json == {"count": 1}
    assert b"Wendy Worker" in client.get("/messages").data
    r = client.get(f"/messages/{users['worker']}")
    assert b"Is my claim OK?" in r.data
    assert client.get("/messages/unread-count").json == {"count": 0}

    with session_scope(app) as s:
        msg = s.query(Message).one()
        assert msg.is_read is True
        assert s.get(User, msg.sender_id).email == "worker@example.com"
