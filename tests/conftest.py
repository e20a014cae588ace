from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Generator

_TEST_DATA_DIR = tempfile.mkdtemp(prefix="fue-tests-")
os.environ.setdefault("FUE_SQLITE_PATH", str(Path(_TEST_DATA_DIR) / "app.db"))
os.environ.setdefault("FUE_FZUL_TEMPLATE", str(Path(_TEST_DATA_DIR) / "missing.xlsx"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app import crud, models, schemas
from app.database import get_db
from app.main import app

PASSWORD = "geheim123"


@pytest.fixture()
def engine(tmp_path: Path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
        future=True,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine) -> Generator[Session, None, None]:
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def company(db: Session) -> models.Company:
    owner = crud.create_user(db, email="chef@example.com", password=PASSWORD, name="Anna Chef")
    return crud.create_company(
        db,
        schemas.CompanyCreate(name="Muster GmbH", vat_id="DE123456789", state_code="DE-NW"),
        owner,
    )


@pytest.fixture()
def admin(db: Session, company: models.Company) -> models.UserProfile:
    return crud.get_user_by_email(db, "chef@example.com")


@pytest.fixture()
def employee(db: Session, company: models.Company) -> models.UserProfile:
    return crud.create_user(
        db,
        email="max@example.com",
        password=PASSWORD,
        name="Max Mustermann",
        first_name="Max",
        last_name="Mustermann",
        company_id=company.id,
        role=models.Role.EMPLOYEE,
        weekly_hours=40.0,
    )


@pytest.fixture()
def project(db: Session, company: models.Company) -> models.Project:
    return crud.create_project(
        db,
        company.id,
        schemas.ProjectCreate(
            name="Sensorplattform",
            funding_reference="16KN123456",
            funding_rate=45.0,
            overhead_rate=100.0,
        ),
    )


def login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture()
def admin_client(client: TestClient, admin: models.UserProfile) -> TestClient:
    response = login(client, admin.email)
    assert response.status_code == 200
    return client


@pytest.fixture()
def employee_client(client: TestClient, employee: models.UserProfile) -> TestClient:
    response = login(client, employee.email)
    assert response.status_code == 200
    return client


def disposition(filename: str, kind: str = "attachment") -> str:
    """Expected Content-Disposition for an ASCII-only filename."""
    return f"{kind}; filename=\"{filename}\"; filename*=UTF-8''{filename}"
