from decimal import Decimal

from app.gigstm.auth import make_reset_token, verify_reset_token
from app.gigstm.db import session_scope
from app.gigstm.models import AuditEvent, User
from app.gigstm.modules.profiles.models import Referral
from app.gigstm.modules.wallet.service import get_wallet

from conftest import PASSWORD, login


def _signup(client, email, password="password123", confirm=None, **extra):
    data = {
        "email": email,
        "password": password,
        "confirm_password": confirm if confirm is not None else password,
        "full_name": "New Person",
    }
    data.update(extra)
    return client.post("/auth/signup", data=data, follow_redirects=False)


def test_worker_signup_creates_account_wallet_and_session(app, client):
    r = _signup(client, "New@Example.com")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/applications/")

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "new@example.com").one()
        assert u.role == "worker"
        assert u.referral_code
        wallet = get_wallet(s, u.id)
        assert wallet is not None
        assert Decimal(str(wallet.balance)) == Decimal("0.00")

    r = client.get("/applications/")
    assert r.status_code == 200


def test_signup_rejects_short_and_mismatched_passwords(app, client):
    r = _signup(client, "short@example.com", password="abc")
    assert r.status_code == 302
    r = _signup(client, "mismatch@example.com", confirm="different123")
    assert r.status_code == 302

    with session_scope(app) as s:
        assert s.query(User).filter(User.email.in_(["short@example.com", "mismatch@example.com"])).count() == 0


def test_signup_rejects_duplicate_email(app, client, users):
    r = client.post(
        "/auth/signup",
        data={"email": "worker@example.com", "password": "password123", "confirm_password": "password123"},
        follow_redirects=True,
    )
    assert b"already exists" in r.data


def test_signup_with_referral_code_records_pending_referral(app, client):
    _signup(client, "referrer@example.com")
    client.get("/auth/logout")
    with session_scope(app) as s:
        referrer = s.query(User).filter(User.email == "referrer@example.com").one()
        code, referrer_id = referrer.referral_code, referrer.id

    _signup(client, "friend@example.com", ref=code.lower())

    with session_scope(app) as s:
        ref = s.query(Referral).one()
        assert ref.status == "pending"
        assert ref.referred.email == "friend@example.com"
        assert ref.referrer_id == referrer_id


def test_worker_signin_lands_on_dashboard(client, users):
    r = login(client, "worker@example.com")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/applications/")


def test_client_signin_lands_on_gig_list(client, users):
    r = login(client, "client@example.com")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/gigs/")


def test_bad_password_is_refused_and_audited(app, client, users):
    r = client.post(
        "/auth/signin",
        data={"email": "worker@example.com", "password": "wrong-password"},
        follow_redirects=True,
    )
    assert b"Invalid email or password." in r.data
    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "auth.login_failed").count() == 1


def test_staff_cannot_use_worker_portal(client, users):
    r = client.post(
        "/auth/signin",
        data={"email": "manager@example.com", "password": "password123"},
        follow_redirects=True,
    )
    assert b"Staff accounts must sign in through the staff portal." in r.data
    r = client.get("/manager/")
    assert r.status_code == 302


def test_worker_cannot_use_staff_portal(client, users):
    r = client.post(
        "/auth/admin/signin",
        data={"email": "worker@example.com", "password": "password123"},
        follow_redirects=True,
    )
    assert b"This portal is for managers and administrators." in r.data


def test_manager_signin_lands_on_manager_dashboard(client, users):
    r = login(client, "manager@example.com", staff=True)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/manager/")
    assert client.get("/manager/").status_code == 200


def test_signin_honours_local_next_only(client, users):
    r = client.post(
        "/auth/signin",
        data={"email": "worker@example.com", "password": "password123", "next": "/wallet"},
    )
    assert r.headers["Location"].endswith("/wallet")
    client.get("/auth/logout")

    r = client.post(
        "/auth/signin",
        data={"email": "worker@example.com", "password": "password123", "next": "//evil.example.com/"},
    )
    assert "evil.example.com" not in r.headers["Location"]


def test_signin_rate_limit(client, users):
    for _ in range(5):
        client.post("/auth/signin", data={"email": "worker@example.com", "password": "nope-nope"})
    r = client.post(
        "/auth/signin",
        data={"email": "worker@example.com", "password": "password123"},
        follow_redirects=True,
    )
    assert b"Too many sign-in attempts" in r.data
    assert client.get("/applications/", follow_redirects=False).status_code == 302


def test_suspended_user_cannot_sign_in(app, client, users):
    with session_scope(app) as s:
        s.get(User, users["worker"]).status = "suspended"
    r = client.post(
        "/auth/signin",
        data={"email": "worker@example.com", "password": "password123"},
        follow_redirects=True,
    )
    assert b"Invalid email or password." in r.data


def test_staff_signup_disabled_without_code(client):
    r = client.get("/auth/admin/signup", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/admin/signin" in r.headers["Location"]


def test_staff_signup_requires_matching_code(app, client):
    app.config["ADMIN_SIGNUP_CODE"] = "let-me-in"
    data = {
        "email": "boss@example.com",
        "password": "password123",
        "confirm_password": "password123",
        "full_name": "Boss",
        "signup_code": "wrong",
    }
    r = client.post("/auth/admin/signup", data=data, follow_redirects=True)
    assert b"Invalid staff sign-up code." in r.data

    data["signup_code"] = "let-me-in"
    r = client.post("/auth/admin/signup", data=data, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/admin/")

    with session_scope(app) as s:
        u = s.query(User).filter(User.email == "boss@example.com").one()
        assert u.role == "admin"
        assert u.signup_source == "admin"


def test_password_reset_flow(app, client, users):
    r = client.post("/auth/forgot-password", data={"email": "worker@example.com"}, follow_redirects=True)
    assert b"If that email is registered" in r.data

    with app.app_context():
        with session_scope(app) as s:
            token = make_reset_token(s.get(User, users["worker"]))

    assert client.get(f"/auth/reset-password/{token}").status_code == 200
    r = client.post(
        f"/auth/reset-password/{token}",
        data={"password": "brand-new-pass", "confirm_password": "brand-new-pass"},
    )
    assert r.status_code == 302
    assert "/auth/signin" in r.headers["Location"]

    assert login(client, "worker@example.com", "brand-new-pass").headers["Location"].endswith("/applications/")

    # Tokens stop working once the password has changed.
    with app.app_context():
        with session_scope(app) as s:
            assert verify_reset_token(s, token) is None


def test_reset_with_garbage_token_is_refused(client):
    r = client.get("/auth/reset-password/not-a-token", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/forgot-password" in r.headers["Location"]


def test_logout_clears_session(client, users):
    login(client, "worker@example.com")
    assert client.get("/wallet").status_code == 200
    client.get("/auth/logout")
    assert client.get("/wallet", follow_redirects=False).status_code == 302


def test_staff_pages_send_visitors_to_the_staff_portal(client, users):
    r = client.get("/manager/", follow_redirects=False)
    assert r.status_code == 302
    assert "/auth/admin/signin" in r.headers["Location"]
    assert "next=" in r.headers["Location"]

    r = client.post(
        "/auth/admin/signin",
        data={"email": "manager@example.com", "password": PASSWORD, "next": "/manager/"},
    )
    assert r.headers["Location"].endswith("/manager/")

    client.get("/auth/logout")
    r = client.get("/wallet", follow_redirects=False)
    assert "/auth/signin" in r.headers["Location"]
    assert "/auth/admin/signin" not in r.headers["Location"]
