import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEFAULTS", "false")

from unittest.mock import patch  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.db import Base, SessionLocal, engine, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.department import Department  # noqa: E402
from app.models.rbac import Role  # noqa: E402
from app.services.seed import DEFAULT_ROLES  # noqa: E402
from factories import make_user  # noqa: E402


@pytest.fixture()
def db_session():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture()
def client(db_session):
    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def queued_tasks():
    """Keep Celery off the network; tests inspect the mocks instead."""
    with patch("app.tasks.documents.process_document.delay") as process, patch(
        "app.tasks.documents.generate_share_suggestions.delay"
    ) as suggest:
        yield {"process": process, "suggest": suggest}


@pytest.fixture()
def roles(db_session):
    created = {}
    for row in DEFAULT_ROLES:
        role = Role(name=row["name"], rank=row["rank"], permissions=list(row["permissions"]))
        db_session.add(role)
        created[row["name"]] = role
    db_session.commit()
    return created


@pytest.fixture()
def departments(db_session):
    created = {}
    for name in ("Engineering", "Sales", "Finance"):
        department = Department(name=name)
        db_session.add(department)
        created[name] = department
    db_session.commit()
    return created


@pytest.fixture()
def person(db_session, roles, departments):
    return make_user(
        db_session, "alice@example.com", roles["Employee"], departments["Engineering"]
    )


@pytest.fixture()
def admin(db_session, roles, departments):
    return make_user(
        db_session,
        "admin@example.com",
        roles["System Administrator"],
        departments["Finance"],
    )


@pytest.fixture()
def auth_headers(person):
    return {"X-Forwarded-User": str(person.id)}


@pytest.fixture()
def admin_headers(admin):
    return {"X-Forwarded-User": str(admin.id)}
