from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.gigstm import create_app
from app.gigstm import auth as auth_module
from app.gigstm.db import session_scope
from app.gigstm.models import Base, User
from app.gigstm.modules.gigs.service import create_gig
from app.gigstm.modules.wallet.service import ensure_wallet
from app.gigstm.rbac import seed_roles, set_user_role

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def _reset_login_attempts():
    auth_module._login_attempts.clear()
    yield
    auth_module._login_attempts.clear()


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("CSRF_ENABLED", "0")
    monkeypatch.delenv("ADMIN_SIGNUP_CODE", raising=False)
    for k in ("S3_ENDPOINT", "S3_REGION", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY"):
        monkeypatch.delenv(k, raising=False)
    # Local storage writes under ./storage
    monkeypatch.chdir(tmp_path)

    app = create_app()
    app.config["TESTING"] = True

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        seed_roles(s)

    yield app
    engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def db(app):
    """A plain session inside an app context, for service-level tests."""
    with app.app_context():
        s = app.extensions["sqlalchemy_sessionmaker"]()
        try:
            yield s
        finally:
            s.rollback()
            s.close()


def make_user(s, email: str, role: str = "worker", *, password: str = PASSWORD, full_name: str | None = None) -> User:
    u = User(
        email=email,
        password_hash=generate_password_hash(password),
        full_name=full_name,
        status="active",
    )
    s.add(u)
    s.flush()
    set_user_role(s, u, role)
    ensure_wallet(s, u.id)
    s.flush()
    return u


def make_gig(s, owner: User, *, title: str = "Shelf audit", pay: str = "5.00", steps=None):
    steps = steps or [
        {"title": "Photo of shelf", "description": None, "required_proof_type": "image"},
        {"title": "Notes", "description": None, "required_proof_type": "text"},
    ]
    return create_gig(
        s,
        owner,
        title=title,
        description="Check the shelves",
        pay_amount=Decimal(pay),
        category_id=None,
        location="Leeds",
        steps=steps,
    )


@pytest.fixture()
def users(app):
    """Seeds one account per role; returns ids keyed by role."""
    with session_scope(app) as s:
        out = {
            "worker": make_user(s, "worker@example.com", "worker", full_name="Wendy Worker").id,
            "worker2": make_user(s, "worker2@example.com", "worker").id,
            "client": make_user(s, "client@example.com", "client").id,
            "manager": make_user(s, "manager@example.com", "manager").id,
            "admin": make_user(s, "admin@example.com", "admin").id,
        }
    return out


def login(client, email: str, password: str = PASSWORD, *, staff: bool = False):
    path = "/auth/admin/signin" if staff else "/auth/signin"
    return client.post(path, data={"email": email, "password": password}, follow_redirects=False)
