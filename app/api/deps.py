from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.services.auth import Principal, ensure_permissions, resolve_principal


def get_current_principal(request: Request, db: Session = Depends(get_db)) -> Principal:
    """Resolve the caller from the identity headers set by the authenticating proxy."""
    user_id = request.headers.get(settings.remote_user_header)
    email = request.headers.get(settings.remote_email_header)
    return resolve_principal(db, user_id, email)


def require_permission(*permissions: str):
    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        ensure_permissions(principal, permissions)
        return principal

    return dependency


__all__ = ["get_current_principal", "get_db", "require_permission"]
