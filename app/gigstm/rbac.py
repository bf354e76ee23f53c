from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, g, redirect, request, url_for
from sqlalchemy.orm import Session

from app.gigstm.constants import PERMISSIONS, ROLE_NAMES, ROLE_PERMISSIONS, WORKER_PORTAL_ROLES
from app.gigstm.models import Permission, Role, User


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def _is_staff_only(permission_key: str) -> bool:
    return not any(permission_key in ROLE_PERMISSIONS[r] for r in WORKER_PORTAL_ROLES)


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    signin_endpoint = "auth.admin_signin_get" if _is_staff_only(permission_key) else "auth.signin_get"

    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            # Unauthenticated -> sign-in page, then back here.
            if not user or not user.is_active:
                nxt = request.full_path or request.path
                if nxt.endswith("?"):
                    nxt = nxt[:-1]
                return redirect(url_for(signin_endpoint, next=nxt))
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                abort(403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def require_login(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        user: User | None = getattr(g, "current_user", None)
        if not user or not user.is_active:
            return redirect(url_for("auth.signin_get", next=request.path))
        return fn(*args, **kwargs)

    return wrapped


def seed_roles(s: Session) -> dict[str, Role]:
    """
    Create every permission and role in the matrix and attach missing grants.
    Idempotent; never removes grants added by hand.
    """
    perms: dict[str, Permission] = {p.key: p for p in s.query(Permission).all()}
    for key, name in PERMISSIONS.items():
        if key not in perms:
            perms[key] = Permission(key=key, name=name)
            s.add(perms[key])

    roles: dict[str, Role] = {r.key: r for r in s.query(Role).all()}
    for role_key, perm_keys in ROLE_PERMISSIONS.items():
        role = roles.get(role_key)
        if role is None:
            role = Role(key=role_key, name=ROLE_NAMES[role_key])
            s.add(role)
            roles[role_key] = role
        for key in perm_keys:
            if perms[key] not in role.permissions:
                role.permissions.append(perms[key])
    s.flush()
    return roles


def set_user_role(s: Session, user: User, role_key: str) -> None:
    """Replace the user's roles with exactly one role."""
    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if role is None:
        raise ValueError(f"Unknown role: {role_key!r}")
    user.roles = [role]
