"""
Idempotent seed: permissions, roles, an optional admin user, gig categories and FAQs.

Usage:
  python scripts/init_db.py            # seed only (tables must exist)
  python scripts/init_db.py --create   # create tables from the models first (dev/SQLite)
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script (Windows-friendly).
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gigstm.models import Base, User  # noqa: E402
from app.gigstm.modules.gigs.models import GigCategory  # noqa: E402
from app.gigstm.modules.support.models import FaqArticle  # noqa: E402
from app.gigstm.modules.wallet.service import ensure_wallet  # noqa: E402
from app.gigstm.rbac import seed_roles, set_user_role  # noqa: E402
from scripts._db_utils import create_script_engine, resolve_database_url, script_session  # noqa: E402

DEFAULT_CATEGORIES = (
    ("Data Entry", "Typing, transcription and spreadsheet work."),
    ("Field Work", "On-site visits, store audits and photo verification."),
    ("Surveys", "Questionnaires and market research."),
    ("Content Moderation", "Reviewing images, text and video against guidelines."),
    ("Delivery", "Pickups, drop-offs and errands."),
)

DEFAULT_FAQS = (
    (
        "How do I get paid?",
        "Each approved step credits the gig's pay amount to your wallet. Request a withdrawal from the Wallet page.",
        "Payments",
    ),
    (
        "Why was my claim rejected?",
        "The reviewer's remarks are shown on the work order. If you disagree you can raise a dispute.",
        "Claims",
    ),
    (
        "What is the qualification test?",
        "Some gigs ask a few multiple-choice questions before you can start. You need 70% to pass.",
        "Applications",
    ),
    (
        "How do referrals work?",
        "Share your referral link. When someone you referred gets their first claim approved, you earn a bonus.",
        "Referrals",
    ),
)


def seed_only(*, database_url: str | None = None) -> None:
    """
    Seed permissions/roles/admin user in an idempotent way.
    Does NOT overwrite an existing admin user's password.
    """
    db_url = resolve_database_url(database_url)
    admin_email = (os.environ.get("ADMIN_EMAIL") or "").strip().lower()
    admin_password = os.environ.get("ADMIN_PASSWORD") or ""

    with script_session(db_url) as s:
        seed_roles(s)

        if admin_email:
            user = s.query(User).filter(User.email == admin_email).one_or_none()
            if not user:
                if len(admin_password) < 8:
                    raise RuntimeError("ADMIN_PASSWORD must be set (8+ characters) to create the admin user.")
                user = User(
                    email=admin_email,
                    password_hash=generate_password_hash(admin_password),
                    full_name="Administrator",
                    signup_source="admin",
                )
                s.add(user)
                s.flush()
            if user.role != "admin":
                set_user_role(s, user, "admin")
            ensure_wallet(s, user.id)

        existing = {c.name for c in s.query(GigCategory).all()}
        for name, description in DEFAULT_CATEGORIES:
            if name not in existing:
                s.add(GigCategory(name=name, description=description))

        if s.query(FaqArticle.id).first() is None:
            for i, (question, answer, category) in enumerate(DEFAULT_FAQS):
                s.add(FaqArticle(question=question, answer=answer, category=category, sort_order=i))

    print("Initialized database (seed_only).", flush=True)
    if admin_email:
        print(f"Admin email: {admin_email}", flush=True)
        print("Admin password: (from ADMIN_PASSWORD)", flush=True)


def create_tables(*, database_url: str | None = None) -> None:
    engine = create_script_engine(resolve_database_url(database_url))
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the GigsTM database.")
    parser.add_argument("--create", action="store_true", help="Create tables from the models before seeding")
    args = parser.parse_args()
    if args.create:
        create_tables()
    seed_only(database_url=None)


if __name__ == "__main__":
    main()
