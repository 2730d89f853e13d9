import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


class ServiceError(HTTPException):
    """Base class for typed rejections raised by the service layer.

    The ``detail`` is always a ``{code, message, details}`` mapping so the
    HTTP handler below can render it without guessing.
    """

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details=None):
        self.message = message
        self.details = details
        super().__init__(
            status_code=type(self).status_code,
            detail=_error_payload(type(self).code, message, details),
        )


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str = "Not authenticated", details=None):
        super().__init__(message, details)


class NotAuthorized(ServiceError):
    status_code = 403
    code = "not_authorized"


class ScopeViolation(NotAuthorized):
    code = "scope_violation"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"


class UpstreamProcessingError(Exception):
    """AI categorization or suggestion failure.

    Caught at the task boundary and recorded on the document; it never
    reaches a request handler.
    """


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        # exc.errors() ctx may contain raw Exception objects (not JSON-serialisable).
        errors = [
            {k: str(v) if k == "ctx" else v for k, v in err.items() if k != "url"}
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", errors),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
