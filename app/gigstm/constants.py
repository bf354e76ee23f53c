"""
Central constants for the GigsTM application.
"""
from __future__ import annotations

from decimal import Decimal

# Roles (one per user in practice; stored through user_roles)
ROLE_WORKER = "worker"
ROLE_CLIENT = "client"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"
ROLES = (ROLE_WORKER, ROLE_CLIENT, ROLE_MANAGER, ROLE_ADMIN)

# Which sign-in portal admits which roles
WORKER_PORTAL_ROLES = frozenset({ROLE_WORKER, ROLE_CLIENT})
STAFF_PORTAL_ROLES = frozenset({ROLE_MANAGER, ROLE_ADMIN})

SIGNUP_SOURCES = frozenset({"worker", "admin"})

USER_STATUS_ACTIVE = "active"
USER_STATUS_SUSPENDED = "suspended"

# Qualification test: ceil(question_count * ratio) correct answers to pass
MCQ_PASS_RATIO = Decimal("0.7")

WORK_ORDER_DUE_DAYS = 7

REFERRAL_BONUS = Decimal("10.00")

PROOF_TYPES = ("text", "image", "file")

KYC_DOCUMENT_TYPES = ("passport", "national_id", "drivers_license", "proof_of_address")

TICKET_PRIORITIES = ("low", "medium", "high")

NOTIFICATION_TYPES = frozenset({"info", "success", "warning", "error"})

# Role -> permission keys. Seeded idempotently by rbac.seed_roles().
PERMISSIONS: dict[str, str] = {
    "gigs.view": "Gigs: browse",
    "gigs.apply": "Gigs: apply",
    "gigs.review": "Gigs: write reviews",
    "gigs.create": "Gigs: create and manage own gigs",
    "applications.view": "Applications: view own",
    "tasks.submit": "Tasks: submit proof",
    "disputes.raise": "Disputes: raise",
    "wallet.view": "Wallet: view",
    "wallet.withdraw": "Wallet: request withdrawal",
    "kyc.upload": "KYC: upload documents",
    "messages.use": "Messages: send and read",
    "notifications.view": "Notifications: view",
    "support.use": "Support: open tickets",
    "announcements.view": "Announcements: view",
    "profile.edit": "Profile: edit",
    "manager.view": "Manager: dashboard",
    "applications.review": "Applications: review",
    "claims.review": "Claims: review",
    "disputes.resolve": "Disputes: resolve",
    "work_orders.cancel": "Work orders: cancel",
    "admin.view": "Admin: dashboard",
    "analytics.view": "Admin: analytics",
    "users.manage": "Admin: manage users",
    "logs.view": "Admin: activity logs",
    "payouts.manage": "Admin: process payouts",
    "kyc.review": "Admin: review KYC",
    "announcements.manage": "Admin: manage announcements",
    "support.manage": "Support: manage all tickets",
}

_COMMON = (
    "gigs.view",
    "messages.use",
    "notifications.view",
    "support.use",
    "announcements.view",
    "profile.edit",
)

ROLE_PERMISSIONS: dict[str, tuple[str, ...]] = {
    ROLE_WORKER: _COMMON
    + (
        "gigs.apply",
        "gigs.review",
        "applications.view",
        "tasks.submit",
        "disputes.raise",
        "wallet.view",
        "wallet.withdraw",
        "kyc.upload",
    ),
    ROLE_CLIENT: _COMMON + ("gigs.create",),
    ROLE_MANAGER: _COMMON
    + (
        "gigs.create",
        "manager.view",
        "applications.review",
        "claims.review",
        "disputes.resolve",
        "work_orders.cancel",
    ),
    ROLE_ADMIN: tuple(PERMISSIONS),
}

ROLE_NAMES = {
    ROLE_WORKER: "Worker",
    ROLE_CLIENT: "Client",
    ROLE_MANAGER: "Manager",
    ROLE_ADMIN: "Administrator",
}
