"""Per-document permission evaluation.

Evaluated fresh on every decision; nothing here is cached, so a revoked share
stops granting access on the very next check.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotAuthorized, NotFound
from app.models.ecm import FULL_PERMISSIONS, Document, DocumentShare
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)


class AccessSource(enum.Enum):
    owner = "owner"
    shared = "shared"
    none = "none"


@dataclass(frozen=True)
class DocumentAccess:
    source: AccessSource
    permissions: frozenset[str]

    def allows(self, permission: str) -> bool:
        return permission in self.permissions


NO_ACCESS = DocumentAccess(AccessSource.none, frozenset())


def find_share(
    db: Session, document_id: uuid.UUID, recipient_id: uuid.UUID
) -> DocumentShare | None:
    return db.scalars(
        select(DocumentShare).where(
            DocumentShare.document_id == document_id,
            DocumentShare.recipient_id == recipient_id,
        )
    ).first()


def evaluate(db: Session, user_id: str | uuid.UUID, document: Document) -> DocumentAccess:
    user_id = coerce_uuid(user_id)
    if document.owner_id == user_id:
        return DocumentAccess(AccessSource.owner, FULL_PERMISSIONS)
    share = find_share(db, document.id, user_id)
    if share is None:
        return NO_ACCESS
    return DocumentAccess(AccessSource.shared, frozenset(share.permission_granted or []))


def get_document(db: Session, document_id: str | uuid.UUID) -> Document:
    document = db.get(Document, coerce_uuid(document_id))
    if not document:
        raise NotFound("Document not found")
    return document


def effective_permissions(
    db: Session, user_id: str | uuid.UUID, document_id: str | uuid.UUID
) -> frozenset[str]:
    return evaluate(db, user_id, get_document(db, document_id)).permissions


def require_access(
    db: Session, user_id: str | uuid.UUID, document: Document, permission: str
) -> DocumentAccess:
    access = evaluate(db, user_id, document)
    if not access.allows(permission):
        logger.info(
            "Denied %s on document %s for user %s", permission, document.id, user_id
        )
        raise NotAuthorized(f"Not authorized to {permission} this document")
    return access


def require_owner(user_id: str | uuid.UUID, document: Document, action: str) -> None:
    if document.owner_id != coerce_uuid(user_id):
        raise NotAuthorized(
            f"Not authorized to {action} this document. Only the owner can {action}."
        )
