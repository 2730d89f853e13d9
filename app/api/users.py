from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db
from app.schemas.common import ListResponse
from app.schemas.user import (
    ControlledDepartmentsUpdate,
    MeRead,
    UserCreate,
    UserImportRequest,
    UserImportResult,
    UserRead,
    UserUpdate,
)
from app.services.auth import Principal
from app.services.users import users

router = APIRouter(tags=["users"])


@router.get("/me", response_model=MeRead)
def read_me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    me = users.me(db, principal.id)
    department = me.user.department
    return MeRead(
        user=UserRead.model_validate(me.user),
        role_name=me.role_name,
        permissions=sorted(me.permissions),
        department_name=department.name if department else None,
    )


@router.get("/users", response_model=ListResponse[UserRead])
def list_users(
    search: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.list_response(
        db, principal.id, search, status_filter, order_by, order_dir, limit, offset
    )


@router.post("/users", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.create(db, principal.id, payload)


@router.post("/users/import", response_model=UserImportResult)
def import_users(
    payload: UserImportRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    created, skipped = users.import_csv(db, principal.id, payload.csv_data)
    return UserImportResult(
        created=[UserRead.model_validate(u) for u in created], skipped=skipped
    )


@router.get("/users/department", response_model=list[UserRead])
def list_department_members(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.department_members(db, principal.id)


@router.get("/users/directory", response_model=list[UserRead])
def company_directory(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.company_directory(db, principal.id)


@router.get("/users/share-candidates", response_model=list[UserRead])
def list_share_candidates(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.share_candidates(db, principal.id)


@router.patch("/users/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.update(db, principal.id, user_id, payload)


@router.put("/users/{user_id}/controlled-departments", response_model=UserRead)
def update_controlled_departments(
    user_id: str,
    payload: ControlledDepartmentsUpdate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.update_controlled_departments(
        db, principal.id, user_id, payload.department_ids
    )


@router.post("/users/{user_id}/archive", response_model=UserRead)
def archive_user(
    user_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return users.archive(db, principal.id, user_id)
