from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.user import UserStatus


class UserBase(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    name: str | None = Field(default=None, max_length=200)
    role_id: UUID | None = None
    department_id: UUID | None = None


class UserCreate(UserBase):
    pass


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    role_id: UUID | None = None
    department_id: UUID | None = None


class ControlledDepartmentsUpdate(BaseModel):
    department_ids: list[UUID]


class UserRead(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: UserStatus
    controlled_department_ids: list[UUID] = []
    created_at: datetime
    updated_at: datetime


class UserImportResult(BaseModel):
    created: list[UserRead]
    skipped: list[dict]


class MeRead(BaseModel):
    user: UserRead
    role_name: str | None = None
    permissions: list[str]
    department_name: str | None = None


class UserImportRequest(BaseModel):
    csv_data: str = Field(min_length=1)
