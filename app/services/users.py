from __future__ import annotations

import csv
import io
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.department import Department
from app.models.rbac import Role
from app.models.user import User, UserStatus
from app.schemas.user import UserCreate, UserUpdate
from app.services import audit
from app.services.auth import Principal, load_principal, requires_permissions
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

_CSV_COLUMNS = {"name", "email", "departmentName", "roleName"}


def _normalize_email(email: str) -> str:
    email = email.strip().lower()
    if "@" not in email:
        raise ValidationError(f"Invalid email: {email}")
    return email


def _get_user(db: Session, user_id: str) -> User:
    user = db.get(User, coerce_uuid(user_id))
    if not user:
        raise NotFound("User not found")
    return user


def _check_refs(db: Session, role_id, department_id) -> None:
    if role_id is not None and not db.get(Role, coerce_uuid(role_id)):
        raise NotFound("Role not found")
    if department_id is not None and not db.get(Department, coerce_uuid(department_id)):
        raise NotFound("Department not found")


def _insert_user(db: Session, email: str, name, role_id, department_id) -> User:
    exists = db.scalars(select(User.id).where(User.email == email)).first()
    if exists:
        raise ValidationError(f"User with email {email} already exists")
    user = User(
        email=email,
        name=name,
        role_id=coerce_uuid(role_id),
        department_id=coerce_uuid(department_id),
    )
    db.add(user)
    db.flush()
    return user


class Users(ListResponseMixin):
    @staticmethod
    @requires_permissions("user:read:any")
    def list(
        db: Session,
        caller_id: str,
        search: str | None,
        status: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[User]:
        stmt = select(User)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern))
            )
        if status is not None:
            try:
                stmt = stmt.where(User.status == UserStatus(status))
            except ValueError:
                raise ValidationError(f"Invalid status: {status}")
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"created_at": User.created_at, "email": User.email, "name": User.name},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    @requires_permissions("user:create")
    def create(db: Session, caller_id: str, payload: UserCreate) -> User:
        email = _normalize_email(payload.email)
        _check_refs(db, payload.role_id, payload.department_id)
        user = _insert_user(db, email, payload.name, payload.role_id, payload.department_id)
        audit.record(db, caller_id, "user.create", "users", user.id, {"email": email})
        db.commit()
        db.refresh(user)
        logger.info("Created user %s", user.id)
        return user

    @staticmethod
    @requires_permissions("user:create")
    def import_csv(db: Session, caller_id: str, csv_data: str) -> tuple[list[User], list[dict]]:
        """Create users from ``name,email,departmentName,roleName`` rows.

        Rows naming an unknown department or role, or an email already in use,
        are skipped and reported back rather than failing the whole import.
        """
        reader = csv.DictReader(io.StringIO(csv_data))
        missing = _CSV_COLUMNS - set(reader.fieldnames or [])
        if missing:
            raise ValidationError(
                "CSV is missing required columns",
                details={"missing_columns": sorted(missing)},
            )
        departments = {d.name: d.id for d in db.scalars(select(Department)).all()}
        roles = {r.name: r.id for r in db.scalars(select(Role)).all()}

        created: list[User] = []
        skipped: list[dict] = []
        seen: set[str] = set()
        for line_no, row in enumerate(reader, start=2):
            email = (row.get("email") or "").strip().lower()
            department_id = departments.get((row.get("departmentName") or "").strip())
            role_id = roles.get((row.get("roleName") or "").strip())
            reason = None
            if "@" not in email:
                reason = "invalid email"
            elif department_id is None:
                reason = f"department not found: {row.get('departmentName')}"
            elif role_id is None:
                reason = f"role not found: {row.get('roleName')}"
            elif email in seen or db.scalars(select(User.id).where(User.email == email)).first():
                reason = "email already exists"
            if reason:
                logger.warning("Skipping CSV line %d (%s): %s", line_no, email, reason)
                skipped.append({"line": line_no, "email": email, "reason": reason})
                continue
            seen.add(email)
            user = User(
                email=email,
                name=(row.get("name") or "").strip() or None,
                role_id=role_id,
                department_id=department_id,
            )
            db.add(user)
            created.append(user)
        db.flush()
        audit.record(
            db,
            caller_id,
            "user.import",
            "users",
            None,
            {"created": len(created), "skipped": len(skipped)},
        )
        db.commit()
        for user in created:
            db.refresh(user)
        logger.info("Imported %d users (%d skipped)", len(created), len(skipped))
        return created, skipped

    @staticmethod
    @requires_permissions("user:update:any")
    def update(db: Session, caller_id: str, user_id: str, payload: UserUpdate) -> User:
        user = _get_user(db, user_id)
        data = payload.model_dump(exclude_unset=True)
        _check_refs(db, data.get("role_id"), data.get("department_id"))
        for key, value in data.items():
            setattr(user, key, value)
        audit.record(
            db,
            caller_id,
            "user.update",
            "users",
            user.id,
            {"updatedFields": {k: str(v) if v is not None else None for k, v in data.items()}},
        )
        db.commit()
        db.refresh(user)
        logger.info("Updated user %s", user.id)
        return user

    @staticmethod
    @requires_permissions("user:update:any")
    def update_controlled_departments(
        db: Session, caller_id: str, user_id: str, department_ids
    ) -> User:
        user = _get_user(db, user_id)
        role = db.get(Role, user.role_id) if user.role_id else None
        if role is None:
            raise ValidationError("User does not have a role assigned")
        if "document:send:department" not in (role.permissions or []):
            raise ValidationError(
                "User's role cannot send to departments, so it cannot control any"
            )
        ids = []
        for value in department_ids:
            dep_id = coerce_uuid(value)
            if dep_id not in ids:
                ids.append(dep_id)
        departments = []
        for dep_id in ids:
            department = db.get(Department, dep_id)
            if not department:
                raise NotFound(f"Department with ID {dep_id} not found")
            departments.append(department)
        user.controlled_departments = departments
        audit.record(
            db,
            caller_id,
            "user.updateControlledDepartments",
            "users",
            user.id,
            {"controlledDepartments": [str(d) for d in ids]},
        )
        db.commit()
        db.refresh(user)
        logger.info("Set %d controlled departments on user %s", len(ids), user.id)
        return user

    @staticmethod
    @requires_permissions("user:delete:any")
    def archive(db: Session, caller_id: str, user_id: str) -> User:
        user = _get_user(db, user_id)
        if user.id == coerce_uuid(caller_id):
            raise ValidationError("You cannot archive your own account")
        user.status = UserStatus.archived
        audit.record(db, caller_id, "user.archive", "users", user.id)
        db.commit()
        db.refresh(user)
        logger.info("Archived user %s", user.id)
        return user

    @staticmethod
    @requires_permissions("user:list:department")
    def department_members(db: Session, caller_id: str) -> list[User]:
        principal = load_principal(db, caller_id)
        if principal.user.department_id is None:
            return []
        return db.scalars(
            select(User)
            .where(
                User.department_id == principal.user.department_id,
                User.status == UserStatus.active,
            )
            .order_by(User.name, User.email)
        ).all()

    @staticmethod
    @requires_permissions("user:list:company")
    def company_directory(db: Session, caller_id: str) -> list[User]:
        return db.scalars(
            select(User)
            .where(User.status == UserStatus.active)
            .order_by(User.name, User.email)
        ).all()

    @staticmethod
    def share_candidates(db: Session, caller_id: str) -> list[User]:
        """Active users other than the caller, for picking share recipients."""
        principal = load_principal(db, caller_id)
        return db.scalars(
            select(User)
            .where(User.status == UserStatus.active, User.id != principal.id)
            .order_by(User.name, User.email)
        ).all()

    @staticmethod
    def me(db: Session, caller_id: str) -> Principal:
        return load_principal(db, caller_id)


users = Users()
