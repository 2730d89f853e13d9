from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from app.api.admin import router as admin_router
from app.api.ecm_distribution import router as ecm_distribution_router
from app.api.ecm_documents import router as ecm_documents_router
from app.api.ecm_sharing import router as ecm_sharing_router
from app.api.users import router as users_router
from app.config import settings
from app.db import SessionLocal
from app.errors import register_error_handlers
from app.logging import configure_logging
from app.observability import ObservabilityMiddleware
from app.services.seed import seed_departments, seed_roles


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.seed_defaults:
        db = SessionLocal()
        try:
            seed_roles(db)
            seed_departments(db)
        finally:
            db.close()
    yield


app = FastAPI(title="Organization Documents API", lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(ecm_documents_router)
_include_api_router(ecm_sharing_router)
_include_api_router(ecm_distribution_router)
_include_api_router(users_router)
_include_api_router(admin_router)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
