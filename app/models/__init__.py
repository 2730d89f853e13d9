from app.models.audit import AuditLog  # noqa: F401
from app.models.department import Department, DepartmentStatus  # noqa: F401
from app.models.rbac import Role  # noqa: F401
from app.models.user import User, UserStatus, user_controlled_departments  # noqa: F401
from app.models.ecm import (  # noqa: F401
    FULL_PERMISSIONS,
    DistributedDocument,
    Document,
    DocumentShare,
    DocumentStatus,
    SharePermission,
    UserDocumentStatus,
)
