from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    actor_id: UUID
    actor_name: str | None = None
    action: str
    target_table: str
    target_id: str | None = None
    details: dict[str, Any] | None = None
    created_at: datetime
