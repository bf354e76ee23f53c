from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from app.gigstm.audit import record_event
from app.gigstm.constants import ROLE_ADMIN, ROLE_WORKER, STAFF_PORTAL_ROLES, WORKER_PORTAL_ROLES
from app.gigstm.db import db_session
from app.gigstm.models import User
from app.gigstm.modules.profiles.service import generate_referral_code, record_referral
from app.gigstm.modules.wallet.service import ensure_wallet
from app.gigstm.rbac import seed_roles, set_user_role

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
_MIN_PASSWORD_LENGTH = 8
_RESET_SALT = "gigstm.password-reset"

# portal -> (admitted roles, sign-in endpoint)
PORTALS = {
    "worker": (WORKER_PORTAL_ROLES, "auth.signin_get"),
    "staff": (STAFF_PORTAL_ROLES, "auth.admin_signin_get"),
}


def _check_rate_limit(ip: str) -> bool:
    now = datetime.utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def _safe_next(nxt: str) -> str | None:
    # Only local paths, to avoid open redirects.
    if nxt.startswith("/") and not nxt.startswith("//"):
        return nxt
    return None


def landing_endpoint(user: User) -> str:
    if user.role == ROLE_ADMIN:
        return "admin.index"
    if user.role in STAFF_PORTAL_ROLES:
        return "manager.dashboard"
    if user.role == ROLE_WORKER:
        return "applications.dashboard"
    return "gigs.list_gigs"


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id for audit/log correlation.
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    try:
        s = db_session()
        user = s.get(User, int(user_id))
        if not user or not user.is_active:
            session.pop("user_id", None)
            g.current_user = None
            return
        g.current_user = user
    except Exception as e:
        current_app.logger.error("load_current_user DB error (clearing session): %s", e)
        session.pop("user_id", None)
        g.current_user = None


def _signin(portal: str):
    allowed_roles, signin_endpoint = PORTALS[portal]
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    nxt = (request.form.get("next") or "").strip()
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        flash("Too many sign-in attempts. Please wait 5 minutes.", "danger")
        return redirect(url_for(signin_endpoint))

    _record_attempt(ip)

    try:
        s = db_session()
        user = s.query(User).filter(User.email == email).one_or_none()
        if not user or not user.is_active or not check_password_hash(user.password_hash, password):
            record_event(
                s,
                actor=None,
                action="auth.login_failed",
                entity_type="User",
                entity_id=email,
                reason="Invalid credentials",
                metadata={"email": email, "portal": portal},
            )
            s.commit()
            flash("Invalid email or password.", "danger")
            return redirect(url_for(signin_endpoint))

        if user.role not in allowed_roles:
            record_event(
                s,
                actor=user,
                action="auth.login_wrong_portal",
                entity_type="User",
                entity_id=str(user.id),
                metadata={"portal": portal, "role": user.role},
            )
            s.commit()
            if portal == "worker":
                flash("Staff accounts must sign in through the staff portal.", "danger")
            else:
                flash("This portal is for managers and administrators. Please use the worker sign-in.", "danger")
            return redirect(url_for(signin_endpoint))

        session["user_id"] = user.id
        _login_attempts[ip].clear()
        record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id), metadata={"portal": portal})
        s.commit()
        return redirect(_safe_next(nxt) or url_for(landing_endpoint(user)))
    except Exception:
        current_app.logger.exception("Sign-in POST crashed (email=%s request_id=%s)", email, getattr(g, "request_id", None))
        raise


@bp.get("/signin")
def signin_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/signin.html", next=nxt, portal="worker")


@bp.post("/signin")
def signin_post():
    return _signin("worker")


@bp.get("/admin/signin")
def admin_signin_get():
    nxt = (request.args.get("next") or "").strip()
    return render_template("auth/signin.html", next=nxt, portal="staff")


@bp.post("/admin/signin")
def admin_signin_post():
    return _signin("staff")


def _create_account(s, *, email: str, password: str, full_name: str, role_key: str, signup_source: str) -> User:
    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        full_name=full_name or None,
        signup_source=signup_source,
        status="active",
        referral_code=generate_referral_code(s),
    )
    s.add(user)
    seed_roles(s)
    set_user_role(s, user, role_key)
    s.flush()
    ensure_wallet(s, user.id)
    return user


def _validate_signup(s, email: str, password: str, confirm: str) -> str | None:
    if not email or "@" not in email:
        return "Enter a valid email address."
    if len(password) < _MIN_PASSWORD_LENGTH:
        return f"Password must be at least {_MIN_PASSWORD_LENGTH} characters."
    if password != confirm:
        return "Passwords do not match."
    if s.query(User.id).filter(User.email == email).first() is not None:
        return "An account with that email already exists."
    return None


@bp.get("/signup")
def signup_get():
    return render_template("auth/signup.html", portal="worker", ref=(request.args.get("ref") or "").strip())


@bp.post("/signup")
def signup_post():
    s = db_session()
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    full_name = (request.form.get("full_name") or "").strip()
    ref = (request.form.get("ref") or "").strip()

    err = _validate_signup(s, email, password, request.form.get("confirm_password") or "")
    if err:
        flash(err, "danger")
        return redirect(url_for("auth.signup_get", ref=ref or None))

    user = _create_account(s, email=email, password=password, full_name=full_name, role_key=ROLE_WORKER, signup_source="worker")
    referral = record_referral(s, user, ref)
    record_event(
        s,
        actor=user,
        action="auth.signup",
        entity_type="User",
        entity_id=str(user.id),
        metadata={"portal": "worker", "referred": referral is not None},
    )
    s.commit()
    session["user_id"] = user.id
    flash("Welcome to GigsTM!", "success")
    return redirect(url_for("applications.dashboard"))


@bp.get("/admin/signup")
def admin_signup_get():
    if not current_app.config.get("ADMIN_SIGNUP_CODE"):
        flash("Staff sign-up is disabled.", "danger")
        return redirect(url_for("auth.admin_signin_get"))
    return render_template("auth/signup.html", portal="staff", ref="")


@bp.post("/admin/signup")
def admin_signup_post():
    expected = current_app.config.get("ADMIN_SIGNUP_CODE") or ""
    if not expected:
        flash("Staff sign-up is disabled.", "danger")
        return redirect(url_for("auth.admin_signin_get"))

    s = db_session()
    email = (request.form.get("email") or "").strip().lower()
    password = request.form.get("password") or ""
    full_name = (request.form.get("full_name") or "").strip()
    code = (request.form.get("signup_code") or "").strip()

    if code != expected:
        record_event(s, actor=None, action="auth.admin_signup_refused", entity_type="User", entity_id=email, reason="Bad signup code")
        s.commit()
        flash("Invalid staff sign-up code.", "danger")
        return redirect(url_for("auth.admin_signup_get"))

    err = _validate_signup(s, email, password, request.form.get("confirm_password") or "")
    if err:
        flash(err, "danger")
        return redirect(url_for("auth.admin_signup_get"))

    user = _create_account(s, email=email, password=password, full_name=full_name, role_key=ROLE_ADMIN, signup_source="admin")
    record_event(s, actor=user, action="auth.signup", entity_type="User", entity_id=str(user.id), metadata={"portal": "staff"})
    s.commit()
    session["user_id"] = user.id
    flash("Staff account created.", "success")
    return redirect(url_for("admin.index"))


def _reset_serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_RESET_SALT)


def make_reset_token(user: User) -> str:
    # The hash fragment makes the token single-use: it stops matching once the password changes.
    return _reset_serializer().dumps({"uid": user.id, "ph": user.password_hash[-16:]})


def verify_reset_token(s, token: str) -> User | None:
    try:
        data = _reset_serializer().loads(token, max_age=current_app.config.get("PASSWORD_RESET_MAX_AGE", 3600))
    except (SignatureExpired, BadSignature):
        return None
    user = s.get(User, int(data.get("uid") or 0))
    if user is None or not user.is_active or user.password_hash[-16:] != data.get("ph"):
        return None
    return user


@bp.get("/forgot-password")
def forgot_password_get():
    return render_template("auth/forgot_password.html")


@bp.post("/forgot-password")
def forgot_password_post():
    s = db_session()
    email = (request.form.get("email") or "").strip().lower()
    user = s.query(User).filter(User.email == email).one_or_none()
    if user is not None and user.is_active:
        link = url_for("auth.reset_password_get", token=make_reset_token(user), _external=True)
        # No mail transport; operators relay the link from the log.
        current_app.logger.info("Password reset link for user %s: %s", user.id, link)
        record_event(s, actor=user, action="auth.password_reset_requested", entity_type="User", entity_id=str(user.id))
        s.commit()
    flash("If that email is registered, a reset link has been issued.", "info")
    return redirect(url_for("auth.signin_get"))


@bp.get("/reset-password/<token>")
def reset_password_get(token: str):
    s = db_session()
    if verify_reset_token(s, token) is None:
        flash("That reset link is invalid or has expired.", "danger")
        return redirect(url_for("auth.forgot_password_get"))
    return render_template("auth/reset_password.html", token=token)


@bp.post("/reset-password/<token>")
def reset_password_post(token: str):
    s = db_session()
    user = verify_reset_token(s, token)
    if user is None:
        flash("That reset link is invalid or has expired.", "danger")
        return redirect(url_for("auth.forgot_password_get"))
    password = request.form.get("password") or ""
    if len(password) < _MIN_PASSWORD_LENGTH:
        flash(f"Password must be at least {_MIN_PASSWORD_LENGTH} characters.", "danger")
        return redirect(url_for("auth.reset_password_get", token=token))
    if password != (request.form.get("confirm_password") or ""):
        flash("Passwords do not match.", "danger")
        return redirect(url_for("auth.reset_password_get", token=token))

    user.password_hash = generate_password_hash(password)
    user.updated_at = datetime.utcnow()
    record_event(s, actor=user, action="auth.password_reset", entity_type="User", entity_id=str(user.id))
    s.commit()
    flash("Password updated. Please sign in.", "success")
    portal_endpoint = "auth.admin_signin_get" if user.role in STAFF_PORTAL_ROLES else "auth.signin_get"
    return redirect(url_for(portal_endpoint))


@bp.get("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.pop("user_id", None)
    return redirect(url_for("routes.index"))
