import logging
import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.audit import AuditLog
from app.services.common import apply_ordering, apply_pagination, coerce_uuid
from app.services.response import ListResponseMixin

logger = logging.getLogger(__name__)


def record(
    db: Session,
    actor_id: str | uuid.UUID,
    action: str,
    target_table: str,
    target_id: str | uuid.UUID | None = None,
    details: dict | None = None,
) -> AuditLog:
    """Stage one audit row in the caller's transaction.

    The row is flushed with, and committed by, the mutation it describes.
    """
    entry = AuditLog(
        actor_id=coerce_uuid(actor_id),
        action=action,
        target_table=target_table,
        target_id=str(target_id) if target_id is not None else None,
        details=details,
    )
    db.add(entry)
    logger.debug("Audit %s on %s/%s by %s", action, target_table, target_id, actor_id)
    return entry


class AuditLogs(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        actor_id: str | None,
        action: str | None,
        target_table: str | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[AuditLog]:
        stmt = select(AuditLog)
        if actor_id is not None:
            stmt = stmt.where(AuditLog.actor_id == coerce_uuid(actor_id))
        if action is not None:
            stmt = stmt.where(AuditLog.action == action)
        if target_table is not None:
            stmt = stmt.where(AuditLog.target_table == target_table)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {"created_at": AuditLog.created_at, "action": AuditLog.action},
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()


audit_logs = AuditLogs()
