from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from app.errors import NotFound, ValidationError
from app.models.ecm import (
    Document,
    DocumentShare,
    DocumentStatus,
    SharePermission,
    UserDocumentStatus,
)
from app.models.user import User
from app.services import audit
from app.services.access import find_share, get_document, require_owner
from app.services.auth import load_principal
from app.services.common import coerce_uuid

logger = logging.getLogger(__name__)

_PERMISSION_ORDER = [p.value for p in SharePermission]


def normalize_permissions(permissions) -> list[str]:
    values = {p.value if isinstance(p, SharePermission) else str(p) for p in permissions}
    invalid = sorted(values - set(_PERMISSION_ORDER))
    if invalid:
        raise ValidationError(
            f"Invalid permissions: {', '.join(invalid)}",
            details={"invalid_permissions": invalid},
        )
    if not values:
        raise ValidationError("At least one permission must be granted")
    return [p for p in _PERMISSION_ORDER if p in values]


def set_read_status(
    db: Session, user_id: uuid.UUID, document_id: uuid.UUID, is_read: bool
) -> UserDocumentStatus:
    status = db.scalars(
        select(UserDocumentStatus).where(
            UserDocumentStatus.user_id == user_id,
            UserDocumentStatus.document_id == document_id,
        )
    ).first()
    if status is None:
        status = UserDocumentStatus(
            user_id=user_id, document_id=document_id, is_read=is_read
        )
        db.add(status)
    else:
        status.is_read = is_read
    return status


def upsert_share(
    db: Session,
    document_id: uuid.UUID,
    recipient_id: uuid.UUID,
    sharer_id: uuid.UUID,
    permissions: list[str],
    merge: bool = False,
) -> DocumentShare:
    """Insert or patch the single share for (document, recipient).

    With ``merge`` the granted set only grows; otherwise it is replaced.
    Either way the recipient's read status goes back to unread.
    """
    share = find_share(db, document_id, recipient_id)
    if share is None:
        share = DocumentShare(
            document_id=document_id,
            recipient_id=recipient_id,
            sharer_id=sharer_id,
            permission_granted=list(permissions),
        )
        db.add(share)
    elif merge:
        combined = set(share.permission_granted or []) | set(permissions)
        share.permission_granted = [p for p in _PERMISSION_ORDER if p in combined]
    else:
        share.permission_granted = list(permissions)
    set_read_status(db, recipient_id, document_id, is_read=False)
    return share


@dataclass(frozen=True)
class UnreadDocument:
    document: Document
    sharer_id: uuid.UUID
    sharer_name: str | None
    sharer_email: str | None


@dataclass(frozen=True)
class SharedUser:
    user: User
    permissions: list[str]


class DocumentShares:
    @staticmethod
    def share(
        db: Session,
        caller_id: str,
        document_id: str,
        recipient_id: str,
        permissions,
    ) -> DocumentShare:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "share")
        recipient = db.get(User, coerce_uuid(recipient_id))
        if not recipient:
            raise NotFound("Recipient not found")
        if recipient.id == document.owner_id:
            raise ValidationError("Cannot share a document with its owner")
        granted = normalize_permissions(permissions)

        share = upsert_share(db, document.id, recipient.id, principal.id, granted)
        audit.record(
            db,
            principal.id,
            "document.share",
            "documents",
            document.id,
            {"recipientId": str(recipient.id), "permissions": granted},
        )
        db.commit()
        db.refresh(share)
        logger.info(
            "Shared document %s with %s (%s)",
            document.id,
            recipient.id,
            ", ".join(granted),
        )
        return share

    @staticmethod
    def unshare(db: Session, caller_id: str, document_id: str, recipient_id: str) -> None:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "unshare")
        share = find_share(db, document.id, coerce_uuid(recipient_id))
        if share is None:
            logger.debug(
                "No share of document %s for %s; nothing to revoke",
                document.id,
                recipient_id,
            )
            return
        db.delete(share)
        audit.record(
            db,
            principal.id,
            "document.unshare",
            "documents",
            document.id,
            {"recipientId": str(share.recipient_id)},
        )
        db.commit()
        logger.info("Revoked share of document %s for %s", document.id, recipient_id)

    @staticmethod
    def mark_read(db: Session, caller_id: str, document_id: str) -> UserDocumentStatus:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        status = set_read_status(db, principal.id, document.id, is_read=True)
        db.commit()
        db.refresh(status)
        logger.info("Marked document %s read for %s", document.id, principal.id)
        return status

    @staticmethod
    def is_read(db: Session, user_id: str, document_id: str) -> bool:
        status = db.scalars(
            select(UserDocumentStatus).where(
                UserDocumentStatus.user_id == coerce_uuid(user_id),
                UserDocumentStatus.document_id == coerce_uuid(document_id),
            )
        ).first()
        return bool(status and status.is_read)

    @staticmethod
    def list_unread(db: Session, caller_id: str) -> list[UnreadDocument]:
        principal = load_principal(db, caller_id)
        # Inner joins drop read markers whose document or share is gone.
        stmt = (
            select(Document, DocumentShare)
            .select_from(UserDocumentStatus)
            .join(Document, Document.id == UserDocumentStatus.document_id)
            .join(
                DocumentShare,
                and_(
                    DocumentShare.document_id == UserDocumentStatus.document_id,
                    DocumentShare.recipient_id == UserDocumentStatus.user_id,
                ),
            )
            .where(
                UserDocumentStatus.user_id == principal.id,
                UserDocumentStatus.is_read.is_(False),
                Document.status != DocumentStatus.trashed,
            )
            .order_by(UserDocumentStatus.updated_at.desc())
        )
        results = []
        for document, share in db.execute(stmt).all():
            sharer = share.sharer
            results.append(
                UnreadDocument(
                    document=document,
                    sharer_id=share.sharer_id,
                    sharer_name=sharer.name if sharer else None,
                    sharer_email=sharer.email if sharer else None,
                )
            )
        return results

    @staticmethod
    def list_shared_users(db: Session, caller_id: str, document_id: str) -> list[SharedUser]:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "manage sharing of")
        shares = db.scalars(
            select(DocumentShare)
            .where(DocumentShare.document_id == document.id)
            .order_by(DocumentShare.created_at.asc())
        ).all()
        return [
            SharedUser(user=share.recipient, permissions=list(share.permission_granted))
            for share in shares
            if share.recipient is not None
        ]

    @staticmethod
    def list_shared_with_me(db: Session, caller_id: str) -> list[Document]:
        principal = load_principal(db, caller_id)
        stmt = (
            select(Document)
            .join(DocumentShare, DocumentShare.document_id == Document.id)
            .where(
                DocumentShare.recipient_id == principal.id,
                Document.status != DocumentStatus.trashed,
            )
            .order_by(Document.created_at.desc())
        )
        return db.scalars(stmt).all()


document_shares = DocumentShares()
