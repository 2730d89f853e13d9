from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_principal, get_db
from app.schemas.distribution import (
    BulkShareRead,
    CompanySendRequest,
    DepartmentSendRequest,
    DistributionRead,
    OrganizationSendRequest,
)
from app.services.auth import Principal
from app.services.ecm_distribution import distributions

router = APIRouter(prefix="/ecm/distribution", tags=["ecm-distribution"])


def _bulk_read(result) -> BulkShareRead:
    return BulkShareRead(
        distribution=DistributionRead.model_validate(result.distribution),
        shared_with=result.shared_with,
        recipient_ids=result.recipient_ids,
    )


@router.post(
    "/departments", response_model=DistributionRead, status_code=status.HTTP_201_CREATED
)
def send_to_departments(
    payload: DepartmentSendRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return distributions.send_to_departments(
        db, principal.id, payload.document_id, payload.department_ids
    )


@router.post(
    "/organization", response_model=DistributionRead, status_code=status.HTTP_201_CREATED
)
def send_to_organization(
    payload: OrganizationSendRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return distributions.send_to_organization(db, principal.id, payload.document_id)


@router.post(
    "/department-shares", response_model=BulkShareRead, status_code=status.HTTP_201_CREATED
)
def send_document_to_department(
    payload: DepartmentSendRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    result = distributions.send_document_to_department(
        db, principal.id, payload.document_id, payload.department_ids
    )
    return _bulk_read(result)


@router.post(
    "/company-shares", response_model=BulkShareRead, status_code=status.HTTP_201_CREATED
)
def send_document_to_company(
    payload: CompanySendRequest,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    result = distributions.send_document_to_company(
        db, principal.id, payload.document_id, payload.department_ids
    )
    return _bulk_read(result)


@router.get("/documents/{document_id}", response_model=list[DistributionRead])
def list_distributions(
    document_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return distributions.list_for_document(db, principal.id, document_id)
