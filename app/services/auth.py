"""Caller identity resolution and the role permission gate.

Every role-gated operation goes through :func:`ensure_permissions`, either via
the :func:`requires_permissions` decorator on a service function or via the
``require_permission`` FastAPI dependency built on top of it.
"""

from __future__ import annotations

import functools
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotAuthorized, Unauthenticated
from app.models.rbac import Role
from app.models.user import User, UserStatus

logger = logging.getLogger(__name__)

ROLE_DIRECTOR = "Director"
ROLE_HEAD_OF_DEPARTMENT = "Head of Department"


@dataclass(frozen=True)
class Principal:
    user: User
    role: Role | None = None
    permissions: frozenset[str] = field(default_factory=frozenset)

    @property
    def id(self) -> uuid.UUID:
        return self.user.id

    @property
    def role_name(self) -> str | None:
        return self.role.name if self.role else None

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


def _parse_user_id(value) -> uuid.UUID | None:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _build_principal(db: Session, user: User) -> Principal:
    if user.status == UserStatus.archived:
        raise Unauthenticated("User account is archived")
    role = db.get(Role, user.role_id) if user.role_id else None
    # A user without a role is valid; it simply holds no permissions.
    permissions = frozenset(role.permissions or []) if role else frozenset()
    return Principal(user=user, role=role, permissions=permissions)


def resolve_principal(
    db: Session, user_id: str | uuid.UUID | None, email: str | None = None
) -> Principal:
    """Resolve the caller from the identity provider's claims.

    The stable user id wins; the verified email claim is only consulted when
    no id was supplied.
    """
    user = None
    if user_id:
        parsed = _parse_user_id(user_id)
        user = db.get(User, parsed) if parsed else None
    elif email:
        user = db.scalars(
            select(User).where(User.email == email.strip().lower())
        ).first()
    if not user:
        raise Unauthenticated()
    return _build_principal(db, user)


def load_principal(db: Session, caller_id: str | uuid.UUID | None) -> Principal:
    return resolve_principal(db, caller_id)


def permissions_for(db: Session, user_id: str | uuid.UUID) -> frozenset[str]:
    try:
        return load_principal(db, user_id).permissions
    except Unauthenticated:
        return frozenset()


def ensure_permissions(principal: Principal, required) -> None:
    missing = sorted(p for p in required if p not in principal.permissions)
    if missing:
        logger.info(
            "Denied user %s (role %s): missing %s",
            principal.id,
            principal.role_name,
            ", ".join(missing),
        )
        raise NotAuthorized(
            "Unauthorized: missing required permissions",
            details={"missing_permissions": missing},
        )


def requires_permissions(*required: str):
    """Gate a service function of the form ``fn(db, caller_id, ...)``."""

    def decorator(func):
        @functools.wraps(func)
        def wrapper(db: Session, caller_id, *args, **kwargs):
            principal = load_principal(db, caller_id)
            ensure_permissions(principal, required)
            return func(db, caller_id, *args, **kwargs)

        wrapper.required_permissions = frozenset(required)
        return wrapper

    return decorator
