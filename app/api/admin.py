from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db, require_permission
from app.schemas.audit import AuditLogRead
from app.schemas.common import ListResponse
from app.schemas.department import DepartmentCreate, DepartmentRead, DepartmentUpdate
from app.schemas.rbac import RoleCreate, RoleRead, RoleUpdate
from app.services import audit as audit_service
from app.services.auth import Principal
from app.services.departments import departments
from app.services.roles import roles

router = APIRouter(tags=["administration"])


# ------------------------------------------------------------------
# Departments
# ------------------------------------------------------------------


@router.get("/departments", response_model=list[DepartmentRead])
def list_departments(
    include_archived: bool = False,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return departments.list(db, principal.id, include_archived)


@router.post(
    "/departments", response_model=DepartmentRead, status_code=status.HTTP_201_CREATED
)
def create_department(
    payload: DepartmentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return departments.create(db, principal.id, payload)


@router.patch("/departments/{department_id}", response_model=DepartmentRead)
def update_department(
    department_id: str,
    payload: DepartmentUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return departments.update(db, principal.id, department_id, payload)


@router.post("/departments/{department_id}/archive", response_model=DepartmentRead)
def archive_department(
    department_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return departments.archive(db, principal.id, department_id)


# ------------------------------------------------------------------
# Roles
# ------------------------------------------------------------------


@router.get("/roles", response_model=list[RoleRead])
def list_roles(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roles.list(db, principal.id)


@router.post("/roles", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(
    payload: RoleCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roles.create(db, principal.id, payload)


@router.patch("/roles/{role_id}", response_model=RoleRead)
def update_role(
    role_id: str,
    payload: RoleUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return roles.update(db, principal.id, role_id, payload)


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(
    role_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    roles.delete(db, principal.id, role_id)


# ------------------------------------------------------------------
# Audit log
# ------------------------------------------------------------------


@router.get(
    "/audit-logs",
    response_model=ListResponse[AuditLogRead],
    dependencies=[Depends(require_permission("system:logs:read"))],
)
def list_audit_logs(
    actor_id: str | None = None,
    action: str | None = None,
    target_table: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    return audit_service.audit_logs.list_response(
        db, actor_id, action, target_table, order_by, order_dir, limit, offset
    )
