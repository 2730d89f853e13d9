from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DepartmentSendRequest(BaseModel):
    document_id: UUID
    department_ids: list[UUID] = Field(min_length=1)


class OrganizationSendRequest(BaseModel):
    document_id: UUID


class CompanySendRequest(BaseModel):
    document_id: UUID
    # Empty or omitted means every user in the organization.
    department_ids: list[UUID] | None = None


class DistributionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    sender_id: UUID
    recipient_department_ids: list[str] | None = None
    sent_to_all: bool
    created_at: datetime


class BulkShareRead(BaseModel):
    distribution: DistributionRead
    shared_with: int
    recipient_ids: list[UUID]
