from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.ecm import DocumentStatus


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class DocumentBase(BaseModel):
    name: str = Field(min_length=1, max_length=500)
    description: str | None = None
    file_id: str = Field(min_length=1, max_length=1024)
    mime_type: str = Field(min_length=1, max_length=255)
    file_size: int = Field(ge=0)
    classified: bool = False


class DocumentCreate(DocumentBase):
    pass


class DocumentRead(DocumentBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    owner_id: UUID
    status: DocumentStatus
    ai_categories: list[str] | None = None
    ai_suggested_recipients: list[str] | None = None
    ai_processing_error: str | None = None
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class UploadURLRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=500)
    mime_type: str = Field(min_length=1, max_length=255)


class UploadURLResponse(BaseModel):
    upload_url: str
    storage_key: str


class DownloadURLResponse(BaseModel):
    download_url: str


# ---------------------------------------------------------------------------
# AI categories
# ---------------------------------------------------------------------------


class CategoryItem(BaseModel):
    id: UUID
    name: str


class CategoryGroup(BaseModel):
    category: str
    items: list[CategoryItem]


class CategoryRename(BaseModel):
    new_name: str = Field(min_length=1, max_length=200)


class CategoryChangeResult(BaseModel):
    category: str
    updated_documents: int
