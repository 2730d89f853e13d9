"""Default roles and departments inserted when their tables are empty."""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.department import Department
from app.models.rbac import Role

logger = logging.getLogger(__name__)

_EMPLOYEE = [
    "profile:read:own",
    "profile:update:own",
    "inbox:read:own",
    "announcement:read:department",
    "announcement:read:company",
]
_HEAD_OF_DEPARTMENT = _EMPLOYEE + ["document:send:department", "user:list:department"]
_DIRECTOR = _HEAD_OF_DEPARTMENT + ["document:send:company", "user:list:company"]
_SYSTEM_ADMINISTRATOR = _DIRECTOR + [
    "user:create",
    "user:read:any",
    "user:update:any",
    "user:delete:any",
    "system:logs:read",
    "system:settings:read",
    "system:settings:update",
]

DEFAULT_ROLES = [
    {"name": "Employee", "rank": 0, "permissions": _EMPLOYEE},
    {"name": "Head of Department", "rank": 1, "permissions": _HEAD_OF_DEPARTMENT},
    {"name": "Director", "rank": 2, "permissions": _DIRECTOR},
    {"name": "System Administrator", "rank": 3, "permissions": _SYSTEM_ADMINISTRATOR},
]

DEFAULT_DEPARTMENTS = [
    {"name": "Human Resources", "description": "Manages employee relations and policies."},
    {"name": "Finance", "description": "Handles financial planning and reporting."},
    {"name": "Engineering", "description": "Develops and maintains products."},
    {"name": "Marketing", "description": "Promotes products and brand."},
    {"name": "Sales", "description": "Drives revenue through customer acquisition."},
]


def seed_roles(db: Session) -> int:
    if db.scalar(select(func.count()).select_from(Role)):
        return 0
    for row in DEFAULT_ROLES:
        db.add(Role(name=row["name"], rank=row["rank"], permissions=list(row["permissions"])))
    db.commit()
    logger.info("Seeded %d default roles", len(DEFAULT_ROLES))
    return len(DEFAULT_ROLES)


def seed_departments(db: Session) -> int:
    if db.scalar(select(func.count()).select_from(Department)):
        return 0
    for row in DEFAULT_DEPARTMENTS:
        db.add(Department(name=row["name"], description=row["description"]))
    db.commit()
    logger.info("Seeded %d default departments", len(DEFAULT_DEPARTMENTS))
    return len(DEFAULT_DEPARTMENTS)
