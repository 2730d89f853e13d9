from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db
from app.schemas.ecm import DocumentRead
from app.schemas.ecm_sharing import (
    ReadStatusRead,
    ShareRead,
    SharedUserRead,
    ShareRequest,
    UnreadDocumentRead,
)
from app.services.auth import Principal
from app.services.ecm_sharing import document_shares

router = APIRouter(prefix="/ecm", tags=["ecm-sharing"])


@router.get("/documents/{document_id}/shares", response_model=list[SharedUserRead])
def list_shared_users(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return [
        SharedUserRead(
            user_id=item.user.id,
            name=item.user.name,
            email=item.user.email,
            permissions=item.permissions,
        )
        for item in document_shares.list_shared_users(db, principal.id, document_id)
    ]


@router.put("/documents/{document_id}/shares/{recipient_id}", response_model=ShareRead)
def share_document(
    document_id: str,
    recipient_id: str,
    payload: ShareRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return document_shares.share(
        db, principal.id, document_id, recipient_id, payload.permissions
    )


@router.delete(
    "/documents/{document_id}/shares/{recipient_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
def unshare_document(
    document_id: str,
    recipient_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    document_shares.unshare(db, principal.id, document_id, recipient_id)


@router.post("/documents/{document_id}/read", response_model=ReadStatusRead)
def mark_read(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return document_shares.mark_read(db, principal.id, document_id)


@router.get("/inbox/unread", response_model=list[UnreadDocumentRead])
def list_unread(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return [
        UnreadDocumentRead(
            document=DocumentRead.model_validate(item.document),
            sharer_id=item.sharer_id,
            sharer_name=item.sharer_name,
            sharer_email=item.sharer_email,
        )
        for item in document_shares.list_unread(db, principal.id)
    ]


@router.get("/inbox/shared", response_model=list[DocumentRead])
def list_shared_with_me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return document_shares.list_shared_with_me(db, principal.id)
