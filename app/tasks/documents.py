import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.documents.process_document", ignore_result=True)
def process_document(document_id: str) -> None:
    """Categorize a freshly uploaded document and settle its status."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _process_document(db, document_id)
    except Exception as e:
        logger.exception("Failed to process document %s: %s", document_id, e)
    finally:
        db.close()


@celery_app.task(
    name="app.tasks.documents.generate_share_suggestions", ignore_result=True
)
def generate_share_suggestions(document_id: str) -> None:
    """Ask the AI service who the document is relevant to."""
    from app.db import SessionLocal

    db = SessionLocal()
    try:
        _generate_share_suggestions(db, document_id)
    except Exception as e:
        logger.exception("Failed to suggest recipients for %s: %s", document_id, e)
    finally:
        db.close()


def _process_document(db: "Session", document_id: str) -> None:  # type: ignore[name-defined]  # noqa: F821
    from app.errors import NotFound, UpstreamProcessingError
    from app.models.ecm import DocumentStatus
    from app.services import ai
    from app.services.access import get_document
    from app.services.ecm_document import documents
    from app.services.ecm_storage import storage

    try:
        document = get_document(db, document_id)
    except NotFound:
        logger.warning("Document %s vanished before processing", document_id)
        return

    try:
        try:
            url = storage.generate_download_url(document.file_id)
        except Exception as e:
            raise UpstreamProcessingError(f"Could not get document URL: {e}") from e
        categories = ai.categorize(document.name, url, document.mime_type)
    except UpstreamProcessingError as e:
        logger.warning("Categorization failed for document %s: %s", document_id, e)
        documents.apply_processing_results(
            db, document_id, DocumentStatus.failed, error=str(e)
        )
        return

    documents.apply_processing_results(
        db, document_id, DocumentStatus.completed, categories=categories
    )


def _generate_share_suggestions(db: "Session", document_id: str) -> None:  # type: ignore[name-defined]  # noqa: F821
    from sqlalchemy import select

    from app.errors import NotFound, UpstreamProcessingError
    from app.models.user import User, UserStatus
    from app.services import ai
    from app.services.access import get_document
    from app.services.ecm_document import documents
    from app.services.ecm_storage import storage

    try:
        document = get_document(db, document_id)
    except NotFound:
        logger.warning("Document %s vanished before suggestion", document_id)
        return

    roster = db.scalars(
        select(User).where(User.status == UserStatus.active).order_by(User.email)
    ).all()
    try:
        try:
            url = storage.generate_download_url(document.file_id)
        except Exception as e:
            raise UpstreamProcessingError(f"Could not get document URL: {e}") from e
        suggested = ai.suggest_recipients(document.name, url, document.owner_id, roster)
    except UpstreamProcessingError as e:
        logger.warning("Recipient suggestion failed for document %s: %s", document_id, e)
        suggested = []

    documents.apply_share_suggestions(db, document_id, suggested)
