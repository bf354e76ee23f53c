import logging
import os
from datetime import timedelta

from flask import Flask, g, render_template, request, session
from dotenv import load_dotenv
from sqlalchemy import inspect as sa_inspect

from app.gigstm.config import load_config
from app.gigstm.db import init_db, teardown_db_session
from app.gigstm.routes import bp as routes_bp
from app.gigstm.auth import bp as auth_bp, load_current_user
from app.gigstm.admin import bp as admin_bp
from app.gigstm.modules.gigs.views import bp as gigs_bp
from app.gigstm.modules.applications.views import bp as applications_bp
from app.gigstm.modules.disputes.views import bp as disputes_bp
from app.gigstm.modules.manager.views import bp as manager_bp
from app.gigstm.modules.wallet.views import bp as wallet_bp
from app.gigstm.modules.kyc.views import bp as kyc_bp
from app.gigstm.modules.notifications.views import bp as notifications_bp
from app.gigstm.modules.support.views import bp as support_bp
from app.gigstm.modules.announcements.views import bp as announcements_bp
from app.gigstm.modules.profiles.views import bp as profiles_bp

# Tables the running code cannot do without; checked at startup.
_REQUIRED_TABLES = (
    "users",
    "gigs",
    "applications",
    "work_orders",
    "claims",
    "wallets",
    "transactions",
    "withdraw_requests",
    "notifications",
)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    app.logger.setLevel(app.config.get("LOG_LEVEL") or "INFO")

    from app.gigstm.security import ensure_csrf_token, validate_csrf

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        from app.gigstm.rbac import user_has_permission

        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm, "current_user": getattr(g, "current_user", None)}

    @app.context_processor
    def _inject_unread_counts() -> dict:
        user = getattr(g, "current_user", None)
        if user is None:
            return {"unread_notifications": 0, "unread_messages": 0}
        from app.gigstm.db import db_session
        from app.gigstm.modules.notifications.service import unread_message_count, unread_notification_count

        s = db_session()
        return {
            "unread_notifications": unread_notification_count(s, user.id),
            "unread_messages": unread_message_count(s, user.id),
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    @app.template_filter("money")
    def _money_filter(value) -> str:
        if value is None:
            return "$0.00"
        return f"${float(value):,.2f}"

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if not app.config.get("CSRF_ENABLED", True):
            return None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Sign-in/sign-up forms are posted before a session exists.
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    if hasattr(os, "register_at_fork"):
        def _after_fork_child():
            engine = app.extensions.get("sqlalchemy_engine")
            if engine:
                engine.dispose()
                app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)

    # Storage health check (fail loudly on misconfiguration)
    if app.config.get("STORAGE_BACKEND") == "s3":
        missing_s3 = [k for k in ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY") if not app.config.get(k)]
        if missing_s3:
            app.logger.error("STORAGE CONFIG ERROR: Missing required S3 env vars: %s", ", ".join(missing_s3))
        else:
            from botocore.exceptions import BotoCoreError, ClientError

            from app.gigstm.storage import S3Storage, storage_from_config

            try:
                storage = storage_from_config(app.config)
                if isinstance(storage, S3Storage):
                    storage._client().head_bucket(Bucket=storage.bucket)
                    app.logger.info("Storage health check PASSED: S3 bucket '%s' accessible", storage.bucket)
            except (BotoCoreError, ClientError) as e:
                app.logger.error("STORAGE CONFIG ERROR: Cannot access S3 bucket: %s", e)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(gigs_bp, url_prefix="/gigs")
    app.register_blueprint(applications_bp, url_prefix="/applications")
    app.register_blueprint(disputes_bp, url_prefix="/disputes")
    app.register_blueprint(manager_bp, url_prefix="/manager")
    app.register_blueprint(wallet_bp)
    app.register_blueprint(kyc_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(support_bp, url_prefix="/support")
    app.register_blueprint(announcements_bp)
    app.register_blueprint(profiles_bp, url_prefix="/profile")

    def _load_user_wrapper():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            g.current_user = None
            return None
        return load_current_user()

    app.before_request(_load_user_wrapper)
    app.teardown_appcontext(teardown_db_session)

    def _run_schema_health_check() -> list[str]:
        engine = app.extensions["sqlalchemy_engine"]
        try:
            insp = sa_inspect(engine)
            return [t for t in _REQUIRED_TABLES if not insp.has_table(t)]
        except Exception:
            app.logger.exception("Schema health check failed")
            return []

    missing = _run_schema_health_check()
    if missing:
        # Tests and fresh checkouts create tables after create_app(); only warn.
        app.logger.warning("DB schema incomplete; run `alembic upgrade head`. Missing: %s", ", ".join(missing))

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return render_template("errors/500.html"), 500

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing_perm = getattr(g, "missing_permission", None)
        if missing_perm:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing_perm, getattr(g, "request_id", None))
        return render_template("errors/403.html", missing_permission=missing_perm), 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        from flask import flash, redirect, url_for

        flash("File too large. Maximum size is 25MB.", "danger")
        referrer = request.referrer
        if referrer and referrer.startswith(request.host_url):
            return redirect(referrer), 302
        return redirect(url_for("routes.index")), 302

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
