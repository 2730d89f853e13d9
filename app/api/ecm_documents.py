from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db
from app.schemas.ecm import (
    CategoryChangeResult,
    CategoryGroup,
    CategoryRename,
    DocumentCreate,
    DocumentRead,
    DownloadURLResponse,
    UploadURLRequest,
    UploadURLResponse,
)
from app.schemas.ecm_sharing import PermissionsRead
from app.services import ecm_document as doc_service
from app.services.auth import Principal

router = APIRouter(prefix="/ecm", tags=["ecm-documents"])


# ------------------------------------------------------------------
# Document lifecycle
# ------------------------------------------------------------------


@router.post("/documents/upload-url", response_model=UploadURLResponse)
def generate_upload_url(
    payload: UploadURLRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    upload_url, storage_key = doc_service.documents.generate_upload_url(
        db, principal.id, payload.file_name, payload.mime_type
    )
    return UploadURLResponse(upload_url=upload_url, storage_key=storage_key)


@router.post("/documents", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
def create_document(
    payload: DocumentCreate,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.create(db, principal.id, payload)


@router.get("/documents", response_model=list[DocumentRead])
def list_my_documents(
    category: str | None = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_my_documents(db, principal.id, category)


@router.get("/documents/trash", response_model=list[DocumentRead])
def list_trashed_documents(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_trashed(db, principal.id)


@router.get("/documents/{document_id}", response_model=DocumentRead)
def get_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.get(db, principal.id, document_id)


@router.get("/documents/{document_id}/permissions", response_model=PermissionsRead)
def get_document_permissions(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    access = doc_service.documents.permissions(db, principal.id, document_id)
    return PermissionsRead(
        document_id=document_id,
        source=access.source.value,
        permissions=sorted(access.permissions),
    )


@router.get("/documents/{document_id}/download-url", response_model=DownloadURLResponse)
def generate_download_url(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    url = doc_service.documents.generate_download_url(db, principal.id, document_id)
    return DownloadURLResponse(download_url=url)


@router.post("/documents/{document_id}/trash", response_model=DocumentRead)
def soft_delete_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.soft_delete(db, principal.id, document_id)


@router.post("/documents/{document_id}/restore", response_model=DocumentRead)
def restore_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.restore(db, principal.id, document_id)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    doc_service.documents.permanent_delete(db, principal.id, document_id)


# ------------------------------------------------------------------
# AI categories
# ------------------------------------------------------------------


@router.get("/categories", response_model=list[CategoryGroup])
def list_categories(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return doc_service.documents.list_categories(db, principal.id)


@router.put("/categories/{category}", response_model=CategoryChangeResult)
def rename_category(
    category: str,
    payload: CategoryRename,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    updated = doc_service.documents.rename_category(
        db, principal.id, category, payload.new_name
    )
    return CategoryChangeResult(category=payload.new_name.strip(), updated_documents=updated)


@router.delete("/categories/{category}", response_model=CategoryChangeResult)
def delete_category(
    category: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    updated = doc_service.documents.delete_category(db, principal.id, category)
    return CategoryChangeResult(category=category, updated_documents=updated)
