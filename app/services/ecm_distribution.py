"""Department and organization-wide distribution of documents.

Two mechanisms live here and keep different authorization rules:

* ``send_to_departments`` / ``send_to_organization`` append a distribution log
  entry only. Department sends accept the ``document:send:department``
  permission *or* the Director role name; organization sends accept the
  Director role name only.
* ``send_document_to_department`` / ``send_document_to_company`` grant
  ``view`` shares in bulk and sit behind the strict permission gate.

Every check runs before the first write, so a rejected call leaves no rows.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.errors import NotAuthorized, NotFound, ScopeViolation, ValidationError
from app.models.department import Department
from app.models.ecm import DistributedDocument, Document, SharePermission
from app.models.user import User
from app.services import audit
from app.services.access import get_document, require_access
from app.services.auth import (
    ROLE_DIRECTOR,
    ROLE_HEAD_OF_DEPARTMENT,
    Principal,
    load_principal,
    requires_permissions,
)
from app.services.common import coerce_uuid
from app.services.ecm_sharing import upsert_share

logger = logging.getLogger(__name__)

PERM_SEND_DEPARTMENT = "document:send:department"
PERM_SEND_COMPANY = "document:send:company"
_BULK_GRANT = [SharePermission.view.value]


@dataclass
class BulkShareResult:
    distribution: DistributedDocument
    recipient_ids: list[uuid.UUID] = field(default_factory=list)

    @property
    def shared_with(self) -> int:
        return len(self.recipient_ids)


def _load_departments(db: Session, department_ids) -> list[uuid.UUID]:
    ids: list[uuid.UUID] = []
    for value in department_ids or []:
        dep_id = coerce_uuid(value)
        if dep_id not in ids:
            ids.append(dep_id)
    if not ids:
        raise ValidationError("At least one department must be selected")
    found = set(db.scalars(select(Department.id).where(Department.id.in_(ids))).all())
    missing = [str(d) for d in ids if d not in found]
    if missing:
        raise NotFound(
            "Department not found", details={"department_ids": missing}
        )
    return ids


def _check_department_scope(principal: Principal, department_ids: list[uuid.UUID]) -> None:
    if principal.role_name != ROLE_HEAD_OF_DEPARTMENT:
        return
    controlled = set(principal.user.controlled_department_ids)
    if not controlled:
        raise ScopeViolation(
            "Unauthorized: Head of Department has no controlled departments defined."
        )
    outside = [str(d) for d in department_ids if d not in controlled]
    if outside:
        raise ScopeViolation(
            "Unauthorized: Cannot send to departments outside controlled scope: "
            + ", ".join(outside),
            details={"department_ids": outside},
        )


def _bulk_recipients(
    db: Session, document: Document, sender_id: uuid.UUID, department_ids
) -> list[uuid.UUID]:
    stmt = select(User.id).order_by(User.email)
    if department_ids is not None:
        stmt = stmt.where(User.department_id.in_(department_ids))
    excluded = {sender_id, document.owner_id}
    return [uid for uid in db.scalars(stmt).all() if uid not in excluded]


def _log_distribution(
    db: Session,
    document: Document,
    sender_id: uuid.UUID,
    department_ids: list[uuid.UUID] | None,
    sent_to_all: bool,
) -> DistributedDocument:
    entry = DistributedDocument(
        document_id=document.id,
        sender_id=sender_id,
        recipient_department_ids=(
            [str(d) for d in department_ids] if department_ids is not None else None
        ),
        sent_to_all=sent_to_all,
    )
    db.add(entry)
    return entry


def _bulk_share(
    db: Session,
    principal: Principal,
    document: Document,
    department_ids: list[uuid.UUID] | None,
    action: str,
) -> BulkShareResult:
    recipients = _bulk_recipients(db, document, principal.id, department_ids)
    for recipient_id in recipients:
        upsert_share(
            db, document.id, recipient_id, principal.id, _BULK_GRANT, merge=True
        )
    entry = _log_distribution(
        db, document, principal.id, department_ids, sent_to_all=department_ids is None
    )
    audit.record(
        db,
        principal.id,
        action,
        "documents",
        document.id,
        {
            "sharedWith": len(recipients),
            "departmentIds": (
                [str(d) for d in department_ids] if department_ids is not None else None
            ),
            "permissions": _BULK_GRANT,
        },
    )
    db.commit()
    db.refresh(entry)
    logger.info(
        "Bulk-shared document %s with %d users (%s)",
        document.id,
        len(recipients),
        action,
    )
    return BulkShareResult(distribution=entry, recipient_ids=recipients)


class Distributions:
    @staticmethod
    def send_to_departments(
        db: Session, caller_id: str, document_id: str, department_ids
    ) -> DistributedDocument:
        principal = load_principal(db, caller_id)
        # Permission string and Director role name are both accepted here.
        if not (
            principal.has_permission(PERM_SEND_DEPARTMENT)
            or principal.role_name == ROLE_DIRECTOR
        ):
            raise NotAuthorized(
                "Unauthorized: Insufficient permissions to send documents to departments."
            )
        document = get_document(db, document_id)
        dep_ids = _load_departments(db, department_ids)
        _check_department_scope(principal, dep_ids)

        entry = _log_distribution(db, document, principal.id, dep_ids, sent_to_all=False)
        audit.record(
            db,
            principal.id,
            "document.distribute.departments",
            "documents",
            document.id,
            {"departmentIds": [str(d) for d in dep_ids]},
        )
        db.commit()
        db.refresh(entry)
        logger.info(
            "Distributed document %s to %d departments", document.id, len(dep_ids)
        )
        return entry

    @staticmethod
    def send_to_organization(
        db: Session, caller_id: str, document_id: str
    ) -> DistributedDocument:
        principal = load_principal(db, caller_id)
        if principal.role_name != ROLE_DIRECTOR:
            raise NotAuthorized(
                "Unauthorized: Only directors can send documents to the entire organization."
            )
        document = get_document(db, document_id)

        entry = _log_distribution(db, document, principal.id, None, sent_to_all=True)
        audit.record(
            db,
            principal.id,
            "document.distribute.organization",
            "documents",
            document.id,
            {"sentToAll": True},
        )
        db.commit()
        db.refresh(entry)
        logger.info("Distributed document %s to the organization", document.id)
        return entry

    @staticmethod
    @requires_permissions(PERM_SEND_DEPARTMENT)
    def send_document_to_department(
        db: Session, caller_id: str, document_id: str, department_ids
    ) -> BulkShareResult:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        dep_ids = _load_departments(db, department_ids)
        _check_department_scope(principal, dep_ids)
        return _bulk_share(db, principal, document, dep_ids, "document.share.departments")

    @staticmethod
    @requires_permissions(PERM_SEND_COMPANY)
    def send_document_to_company(
        db: Session, caller_id: str, document_id: str, department_ids=None
    ) -> BulkShareResult:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        dep_ids = None
        if department_ids:
            dep_ids = _load_departments(db, department_ids)
            _check_department_scope(principal, dep_ids)
        return _bulk_share(db, principal, document, dep_ids, "document.share.company")

    @staticmethod
    def list_for_document(
        db: Session, caller_id: str, document_id: str
    ) -> list[DistributedDocument]:
        principal = load_principal(db, caller_id)
        document = get_document(db, document_id)
        require_access(db, principal.id, document, SharePermission.resend.value)
        return db.scalars(
            select(DistributedDocument)
            .where(DistributedDocument.document_id == document.id)
            .order_by(DistributedDocument.created_at.desc())
        ).all()


distributions = Distributions()
