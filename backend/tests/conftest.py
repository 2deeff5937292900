import os

# The application engine is built at import time; keep it off PostgreSQL in tests.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from campus.api.deps import get_db, get_session_factory  # noqa: E402
from campus.core.config import Settings, get_settings  # noqa: E402
from campus.db.base import Base  # noqa: E402
from campus.main import app  # noqa: E402
from campus.services.directory import DirectoryService  # noqa: E402
from campus.services.scheduling import SchedulingEngine  # noqa: E402
from campus.services.store import EntityStore  # noqa: E402


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url="sqlite+pysqlite://",
        reports_dir=tmp_path / "reports",
        report_max_workers=4,
    )


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def store(db, settings):
    return EntityStore(db, settings)


@pytest.fixture()
def directory(store):
    return DirectoryService(store)


@pytest.fixture()
def scheduler(store):
    return SchedulingEngine(store)


class Catalog:
    """Small builder for the department/course/lecturer/student fixtures most tests need."""

    def __init__(self, directory: DirectoryService, scheduler: SchedulingEngine) -> None:
        self.directory = directory
        self.scheduler = scheduler
        self._codes = 0

    def department(self, name="Computer Science"):
        self._codes += 1
        return self.directory.create_department(name=name, code=f"D{self._codes:02d}")

    def course(self, department_id, name="Algorithms"):
        self._codes += 1
        return self.directory.create_course(name=name, code=f"C{self._codes:03d}", department_id=department_id)

    def lecturer(self, department_id, name="Grace Hopper", courses=()):
        lecturer = self.directory.create_lecturer(name=name, phone="0791234567", department_id=department_id)
        for course_id in courses:
            self.directory.assign_course(lecturer.id, course_id)
        return lecturer

    def student(self, department_id, name="Ada Lovelace", enrollment_year=2023):
        return self.directory.create_student(
            name=name,
            phone="0781234567",
            department_id=department_id,
            enrollment_year=enrollment_year,
        )

    def session(self, course_id, lecturer_id, day="Monday", start=(9, 0), end=(10, 30), capacity=30, location="Hall A"):
        return self.scheduler.create_class_session(
            course_id=course_id,
            lecturer_id=lecturer_id,
            start_time=time(*start),
            end_time=time(*end),
            day=day,
            location=location,
            max_capacity=capacity,
        )


@pytest.fixture()
def catalog(directory, scheduler):
    return Catalog(directory, scheduler)


@pytest.fixture()
def client(engine, session_factory, tmp_path, monkeypatch):
    monkeypatch.setattr(get_settings(), "reports_dir", tmp_path / "reports")
    # The single StaticPool connection must not be shared by concurrent report jobs.
    monkeypatch.setattr(get_settings(), "report_max_workers", 1)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def register_user(client, payload):
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    return response.json()


def login_user(client, email, password):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"]


def auth_headers(client, *, role, email=None):
    email = email or f"{role}@example.com"
    register_user(client, {"name": f"{role.title()} User", "email": email, "password": "password123", "role": role})
    token = login_user(client, email, "password123")
    return {"Authorization": f"Bearer {token}"}
