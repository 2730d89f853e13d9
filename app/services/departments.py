import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.department import Department, DepartmentStatus
from app.schemas.department import DepartmentCreate, DepartmentUpdate
from app.services import audit
from app.services.auth import load_principal, requires_permissions
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _get_department(db: Session, department_id: str) -> Department:
    department = db.get(Department, coerce_uuid(department_id))
    if not department:
        raise NotFound("Department not found")
    return department


def _ensure_unique_name(db: Session, name: str, exclude_id=None) -> None:
    stmt = select(Department.id).where(Department.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Department.id != exclude_id)
    if db.scalars(stmt).first():
        raise ValidationError(f"Department {name!r} already exists")


class Departments:
    @staticmethod
    def list(db: Session, caller_id: str, include_archived: bool = False) -> list[Department]:
        load_principal(db, caller_id)
        stmt = select(Department).order_by(Department.name)
        if not include_archived:
            stmt = stmt.where(Department.status == DepartmentStatus.active)
        return db.scalars(stmt).all()

    @staticmethod
    @requires_permissions("system:settings:update")
    def create(db: Session, caller_id: str, payload: DepartmentCreate) -> Department:
        name = payload.name.strip()
        _ensure_unique_name(db, name)
        department = Department(name=name, description=payload.description)
        db.add(department)
        db.flush()
        audit.record(db, caller_id, "department.create", "departments", department.id, {"name": name})
        db.commit()
        db.refresh(department)
        logger.info("Created department %s", department.id)
        return department

    @staticmethod
    @requires_permissions("system:settings:update")
    def update(
        db: Session, caller_id: str, department_id: str, payload: DepartmentUpdate
    ) -> Department:
        department = _get_department(db, department_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("name") is not None:
            data["name"] = data["name"].strip()
            _ensure_unique_name(db, data["name"], exclude_id=department.id)
        for key, value in data.items():
            setattr(department, key, value)
        audit.record(db, caller_id, "department.update", "departments", department.id, data)
        db.commit()
        db.refresh(department)
        logger.info("Updated department %s", department.id)
        return department

    @staticmethod
    @requires_permissions("system:settings:update")
    def archive(db: Session, caller_id: str, department_id: str) -> Department:
        department = _get_department(db, department_id)
        department.status = DepartmentStatus.archived
        audit.record(db, caller_id, "department.archive", "departments", department.id)
        db.commit()
        db.refresh(department)
        logger.info("Archived department %s", department.id)
        return department


departments = Departments()
