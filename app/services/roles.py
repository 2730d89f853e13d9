import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.rbac import Role
from app.models.user import User
from app.schemas.rbac import RoleCreate, RoleUpdate
from app.services import audit
from app.services.auth import requires_permissions
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _get_role(db: Session, role_id: str) -> Role:
    role = db.get(Role, coerce_uuid(role_id))
    if not role:
        raise NotFound("Role not found")
    return role


def _clean_permissions(permissions: list[str]) -> list[str]:
    cleaned: list[str] = []
    for permission in permissions:
        permission = permission.strip()
        if not permission:
            raise ValidationError("Permission strings must not be empty")
        if permission not in cleaned:
            cleaned.append(permission)
    return cleaned


def _ensure_unique_name(db: Session, name: str, exclude_id=None) -> None:
    stmt = select(Role.id).where(Role.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Role.id != exclude_id)
    if db.scalars(stmt).first():
        raise ValidationError(f"Role {name!r} already exists")


class Roles:
    @staticmethod
    @requires_permissions("system:settings:read")
    def list(db: Session, caller_id: str) -> list[Role]:
        return db.scalars(select(Role).order_by(Role.rank, Role.name)).all()

    @staticmethod
    @requires_permissions("system:settings:update")
    def create(db: Session, caller_id: str, payload: RoleCreate) -> Role:
        name = payload.name.strip()
        _ensure_unique_name(db, name)
        role = Role(
            name=name,
            description=payload.description,
            rank=payload.rank,
            permissions=_clean_permissions(payload.permissions),
        )
        db.add(role)
        db.flush()
        audit.record(
            db, caller_id, "role.create", "roles", role.id,
            {"name": name, "permissions": role.permissions},
        )
        db.commit()
        db.refresh(role)
        logger.info("Created role %s", role.id)
        return role

    @staticmethod
    @requires_permissions("system:settings:update")
    def update(db: Session, caller_id: str, role_id: str, payload: RoleUpdate) -> Role:
        role = _get_role(db, role_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("name") is not None:
            data["name"] = data["name"].strip()
            _ensure_unique_name(db, data["name"], exclude_id=role.id)
        if data.get("permissions") is not None:
            data["permissions"] = _clean_permissions(data["permissions"])
        for key, value in data.items():
            if value is not None or key == "description":
                setattr(role, key, value)
        audit.record(db, caller_id, "role.update", "roles", role.id, data)
        db.commit()
        db.refresh(role)
        logger.info("Updated role %s", role.id)
        return role

    @staticmethod
    @requires_permissions("system:settings:update")
    def delete(db: Session, caller_id: str, role_id: str) -> None:
        role = _get_role(db, role_id)
        assigned = db.scalar(select(func.count()).select_from(User).where(User.role_id == role.id))
        if assigned:
            raise ValidationError(
                "Cannot delete a role that is currently assigned to users.",
                details={"assigned_users": assigned},
            )
        audit.record(db, caller_id, "role.delete", "roles", role.id, {"name": role.name})
        db.delete(role)
        db.commit()
        logger.info("Deleted role %s", role_id)


roles = Roles()
