from __future__ import annotations

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.ecm import DocumentRead

PermissionLiteral = Literal["view", "download", "comment", "edit_metadata", "resend"]


class ShareRequest(BaseModel):
    permissions: list[PermissionLiteral] = Field(min_length=1)


class ShareRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    document_id: UUID
    recipient_id: UUID
    sharer_id: UUID
    permission_granted: list[str]
    created_at: datetime
    updated_at: datetime


class SharedUserRead(BaseModel):
    user_id: UUID
    name: str | None = None
    email: str
    permissions: list[str]


class UnreadDocumentRead(BaseModel):
    document: DocumentRead
    sharer_id: UUID
    sharer_name: str | None = None
    sharer_email: str | None = None


class ReadStatusRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    document_id: UUID
    user_id: UUID
    is_read: bool


class PermissionsRead(BaseModel):
    document_id: UUID
    source: Literal["owner", "shared", "none"]
    permissions: list[str]
