#!/usr/bin/env python3
"""Set a user's role (worker, client, manager or admin).

Usage:
  python scripts/grant_role.py --email someone@example.com --role manager
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gigstm.audit import record_event  # noqa: E402
from app.gigstm.constants import ROLES  # noqa: E402
from app.gigstm.models import User  # noqa: E402
from app.gigstm.rbac import seed_roles, set_user_role  # noqa: E402
from scripts._db_utils import resolve_database_url, script_session  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--email", required=True, help="User email")
    parser.add_argument("--role", required=True, choices=ROLES)
    args = parser.parse_args()

    with script_session(resolve_database_url()) as s:
        seed_roles(s)
        user = s.query(User).filter(User.email == args.email.strip().lower()).one_or_none()
        if not user:
            print(f"User not found: {args.email}")
            sys.exit(1)
        before = user.role
        if before == args.role:
            print(f"{args.email} already has role {args.role}")
            return
        set_user_role(s, user, args.role)
        record_event(
            s,
            actor=None,
            action="user.role_granted",
            entity_type="User",
            entity_id=str(user.id),
            reason="scripts/grant_role.py",
            metadata={"before": before, "after": args.role},
        )
        print(f"{args.email}: {before} -> {args.role}")


if __name__ == "__main__":
    main()
