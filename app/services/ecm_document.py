from __future__ import annotations

import logging
import uuid

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.errors import ValidationError
from app.models.ecm import (
    Document,
    DocumentShare,
    DocumentStatus,
    SharePermission,
    UserDocumentStatus,
)
from app.models.user import User
from app.schemas.ecm import DocumentCreate
from app.services import audit
from app.services.access import evaluate, get_document, require_access, require_owner
from app.services.auth import load_principal
from app.services.common import coerce_uuid
from app.services.ecm_storage import storage

logger = logging.getLogger(__name__)

_FINAL_AI_STATUSES = {DocumentStatus.completed, DocumentStatus.failed}


def enqueue_processing(document_id: uuid.UUID) -> None:
    """Queue categorization and recipient suggestion; failures never reach the caller."""
    from app.tasks.documents import generate_share_suggestions, process_document

    try:
        process_document.delay(str(document_id))
        generate_share_suggestions.delay(str(document_id))
    except Exception:
        logger.exception("Failed to enqueue AI processing for document %s", document_id)


class Documents:
    @staticmethod
    def generate_upload_url(
        db: Session, caller_id: str, file_name: str, mime_type: str
    ) -> tuple[str, str]:
        principal = load_principal(db, caller_id)
        storage_key = storage.generate_storage_key(principal.id, file_name)
        upload_url = storage.generate_upload_url(storage_key, mime_type)
        logger.info("Issued upload URL for %s to user %s", storage_key, principal.id)
        return upload_url, storage_key

    @staticmethod
    def create(db: Session, caller_id: str, payload: DocumentCreate) -> Document:
        principal = load_principal(db, caller_id)
        status = (
            DocumentStatus.completed if payload.classified else DocumentStatus.processing
        )
        document = Document(
            owner_id=principal.id,
            name=payload.name,
            description=payload.description,
            file_id=payload.file_id,
            mime_type=payload.mime_type,
            file_size=payload.file_size,
            classified=payload.classified,
            status=status,
        )
        db.add(document)
        db.flush()
        audit.record(
            db,
            principal.id,
            "document.create",
            "documents",
            document.id,
            {"name": document.name, "classified": document.classified},
        )
        db.commit()
        db.refresh(document)
        logger.info("Created document %s (%s)", document.id, status.value)
        if status == DocumentStatus.processing:
            enqueue_processing(document.id)
        return document

    @staticmethod
    def get(db: Session, caller_id: str, document_id: str) -> Document:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_access(db, principal.id, document, SharePermission.view.value)
        return document

    @staticmethod
    def list_my_documents(
        db: Session, caller_id: str, category: str | None = None
    ) -> list[Document]:
        principal = load_principal(db, caller_id)
        shared_ids = select(DocumentShare.document_id).where(
            DocumentShare.recipient_id == principal.id
        )
        stmt = (
            select(Document)
            .where(
                or_(Document.owner_id == principal.id, Document.id.in_(shared_ids)),
                Document.status != DocumentStatus.trashed,
            )
            .order_by(Document.created_at.desc())
        )
        documents = db.scalars(stmt).all()
        if category is not None:
            documents = [d for d in documents if category in (d.ai_categories or [])]
        return documents

    @staticmethod
    def list_trashed(db: Session, caller_id: str) -> list[Document]:
        principal = load_principal(db, caller_id)
        return db.scalars(
            select(Document)
            .where(
                Document.owner_id == principal.id,
                Document.status == DocumentStatus.trashed,
            )
            .order_by(Document.updated_at.desc())
        ).all()

    @staticmethod
    def generate_download_url(db: Session, caller_id: str, document_id: str) -> str:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_access(db, principal.id, document, SharePermission.download.value)
        return storage.generate_download_url(document.file_id, document.name)

    @staticmethod
    def soft_delete(db: Session, caller_id: str, document_id: str) -> Document:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "soft delete")
        if document.status != DocumentStatus.completed:
            raise ValidationError(
                f"Only completed documents can be moved to trash (status is {document.status.value})"
            )
        document.status = DocumentStatus.trashed
        audit.record(db, principal.id, "document.softDelete", "documents", document.id)
        db.commit()
        db.refresh(document)
        logger.info("Trashed document %s", document.id)
        return document

    @staticmethod
    def restore(db: Session, caller_id: str, document_id: str) -> Document:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "restore")
        if document.status != DocumentStatus.trashed:
            raise ValidationError("Only trashed documents can be restored")
        document.status = DocumentStatus.completed
        audit.record(db, principal.id, "document.restore", "documents", document.id)
        db.commit()
        db.refresh(document)
        logger.info("Restored document %s", document.id)
        return document

    @staticmethod
    def permanent_delete(db: Session, caller_id: str, document_id: str) -> None:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_owner(principal.id, document, "delete")

        shares = list(document.shares)
        for share in shares:
            db.delete(share)
        statuses = db.scalars(
            select(UserDocumentStatus).where(
                UserDocumentStatus.document_id == document.id
            )
        ).all()
        for status in statuses:
            db.delete(status)
        removed_shares = len(shares)
        db.flush()
        db.expire(document, ["shares"])
        file_id = document.file_id
        audit.record(
            db,
            principal.id,
            "document.delete",
            "documents",
            document.id,
            {"name": document.name, "removedShares": removed_shares},
        )
        db.delete(document)
        db.commit()
        logger.info("Permanently deleted document %s", document_id)
        try:
            storage.delete_object(file_id)
        except Exception:
            logger.exception("Failed to delete blob %s for document %s", file_id, document_id)

    # ------------------------------------------------------------------
    # AI categories
    # ------------------------------------------------------------------

    @staticmethod
    def list_categories(db: Session, caller_id: str) -> list[dict]:
        grouped: dict[str, list[dict]] = {}
        for document in Documents.list_my_documents(db, caller_id):
            if document.status != DocumentStatus.completed:
                continue
            for category in document.ai_categories or []:
                grouped.setdefault(category, []).append(
                    {"id": document.id, "name": document.name}
                )
        return [
            {"category": category, "items": items}
            for category, items in sorted(grouped.items())
        ]

    @staticmethod
    def rename_category(db: Session, caller_id: str, old_name: str, new_name: str) -> int:
        principal = load_principal(db, caller_id)
        new_name = new_name.strip()
        if not new_name:
            raise ValidationError("Category name must not be empty")
        updated = 0
        for document in _owned_with_category(db, principal.id, old_name):
            renamed = []
            for category in document.ai_categories:
                value = new_name if category == old_name else category
                if value not in renamed:
                    renamed.append(value)
            document.ai_categories = renamed
            updated += 1
        audit.record(
            db,
            principal.id,
            "aiCategory.rename",
            "documents",
            None,
            {"oldName": old_name, "newName": new_name, "documents": updated},
        )
        db.commit()
        logger.info("Renamed category %r to %r on %d documents", old_name, new_name, updated)
        return updated

    @staticmethod
    def delete_category(db: Session, caller_id: str, name: str) -> int:
        principal = load_principal(db, caller_id)
        updated = 0
        for document in _owned_with_category(db, principal.id, name):
            document.ai_categories = [c for c in document.ai_categories if c != name]
            updated += 1
        audit.record(
            db,
            principal.id,
            "aiCategory.delete",
            "documents",
            None,
            {"categoryName": name, "documents": updated},
        )
        db.commit()
        logger.info("Removed category %r from %d documents", name, updated)
        return updated

    # ------------------------------------------------------------------
    # AI processing results (called from the worker)
    # ------------------------------------------------------------------

    @staticmethod
    def apply_processing_results(
        db: Session,
        document_id: str,
        status: DocumentStatus,
        categories: list[str] | None = None,
        error: str | None = None,
    ) -> Document:
        if status not in _FINAL_AI_STATUSES:
            raise ValidationError(f"Invalid processing status: {status.value}")
        document = get_document(db, document_id)
        document.ai_categories = categories
        document.ai_processing_error = error
        if document.status == DocumentStatus.processing:
            document.status = status
        else:
            logger.warning(
                "Document %s left %s before processing finished; status kept",
                document.id,
                document.status.value,
            )
        audit.record(
            db,
            document.owner_id,
            f"document.aiProcessed.{status.value}",
            "documents",
            document.id,
            {"newStatus": status.value, "categories": categories, "error": error},
        )
        db.commit()
        db.refresh(document)
        logger.info("Recorded AI results for document %s (%s)", document.id, status.value)
        return document

    @staticmethod
    def apply_share_suggestions(
        db: Session, document_id: str, user_ids: list[str]
    ) -> Document:
        document = get_document(db, document_id)
        parsed: list[uuid.UUID] = []
        for value in user_ids:
            try:
                uid = coerce_uuid(value)
            except ValidationError:
                logger.debug("Dropping malformed suggested user id %r", value)
                continue
            if uid != document.owner_id and uid not in parsed:
                parsed.append(uid)
        known = set()
        if parsed:
            known = set(db.scalars(select(User.id).where(User.id.in_(parsed))).all())
        document.ai_suggested_recipients = [str(uid) for uid in parsed if uid in known]
        db.commit()
        db.refresh(document)
        logger.info(
            "Stored %d suggested recipients for document %s",
            len(document.ai_suggested_recipients),
            document.id,
        )
        return document

    @staticmethod
    def permissions(db: Session, caller_id: str, document_id: str):
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        return evaluate(db, principal.id, document)


def _owned_with_category(db: Session, owner_id: uuid.UUID, category: str) -> list[Document]:
    owned = db.scalars(select(Document).where(Document.owner_id == owner_id)).all()
    return [d for d in owned if category in (d.ai_categories or [])]


documents = Documents()
