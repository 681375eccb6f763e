"""Test configuration and fixtures for the BookNav library service.

1. Isolated databases - every test gets its own SQLite file
2. Configuration overrides - test settings never read the developer's env
3. Seeded data - one teacher, one class, two students and two books
4. HTTP client - the real app factory behind FastAPI's TestClient
"""

import os
from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import logfire
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from booknav.api import create_app
from booknav.auth import issue_token
from booknav.config import AppConfig, reset_config
from booknav.database import (
    BookCreateSchema,
    BookRepository,
    ClassCreateSchema,
    ClassRepository,
    DatabaseManager,
    StudentCreateSchema,
    StudentRepository,
    UserCreateSchema,
    UserRepository,
)
from booknav.models import Book, SchoolClass, StaffUser, Student

TEST_JWT_SECRET = "test-signing-secret-0123456789"


@pytest.fixture(scope="session", autouse=True)
def local_logfire() -> None:
    """Keep spans in-process for the whole run."""
    logfire.configure(send_to_logfire=False, console=False)


# === Configuration Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Provide a clean environment without BOOKNAV_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("BOOKNAV_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Provide a temporary database path for each test."""
    return tmp_path / "test_booknav.db"


@pytest.fixture
def test_config(test_db_path: Path, clean_env) -> Generator[AppConfig, None, None]:  # noqa: ARG001
    """Provide a test-specific configuration."""
    reset_config()

    config = AppConfig(
        app_name="BookNav Test",
        database_path=test_db_path,
        jwt_secret=TEST_JWT_SECRET,
        debug=True,
        log_level="DEBUG",
        logfire_send=False,
        logfire_console=False,
    )

    yield config

    reset_config()


# === Database Fixtures ===


@pytest.fixture
def db_manager(test_config: AppConfig) -> Generator[DatabaseManager, None, None]:
    manager = DatabaseManager(test_config.get_database_url())
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    """Provide a SQLAlchemy session for repository tests."""
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


# === Seeded Data ===


@dataclass
class Library:
    teacher: StaffUser
    school_class: SchoolClass
    student: Student
    other_student: Student
    book: Book
    single_copy_book: Book


def seed_library(session: Session) -> Library:
    """Create a small catalog and roster owned by one teacher."""
    teacher = UserRepository(session).create(
        UserCreateSchema(username="msfrizzle", email="frizzle@school.org", password="magicbus123")
    )
    school_class = ClassRepository(session).create(
        ClassCreateSchema(name="Room 12", grade="4", school_year="2024-2025"),
        teacher_id=teacher.id,
    )
    students = StudentRepository(session)
    student = students.create(
        StudentCreateSchema(
            first_name="Ava", last_name="Lopez", class_id=school_class.id, pin="1111"
        )
    )
    other_student = students.create(
        StudentCreateSchema(
            first_name="Noah", last_name="Kim", class_id=school_class.id, pin="2222"
        )
    )
    books = BookRepository(session)
    book = books.create(
        BookCreateSchema(
            title="Charlotte's Web",
            author="E. B. White",
            genre="Fiction",
            isbn="978-0-06-440055-8",
            copies=2,
        ),
        owner_id=teacher.id,
    )
    single_copy_book = books.create(
        BookCreateSchema(title="Holes", author="Louis Sachar", isbn="9780440414803", copies=1),
        owner_id=teacher.id,
    )
    return Library(
        teacher=teacher,
        school_class=school_class,
        student=student,
        other_student=other_student,
        book=book,
        single_copy_book=single_copy_book,
    )


@pytest.fixture
def library(test_db_session: Session) -> Library:
    """Seeded data for repository tests."""
    return seed_library(test_db_session)


# === HTTP Fixtures ===


@pytest.fixture
def client(test_config: AppConfig) -> Generator[TestClient, None, None]:
    """TestClient running the app lifespan (database created on enter)."""
    with TestClient(create_app(test_config)) as client:
        yield client


@pytest.fixture
def api_session(client: TestClient) -> Generator[Session, None, None]:
    """A session on the app's own database, for seeding and inspection."""
    session = client.app.state.db.create_session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_library(api_session: Session) -> Library:
    """Seeded data for API tests."""
    return seed_library(api_session)


@pytest.fixture
def staff_headers(api_library: Library, test_config: AppConfig) -> dict[str, str]:
    token = issue_token(api_library.teacher, test_config)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers(api_library: Library) -> dict[str, str]:
    return {"Authorization": f"PIN {api_library.student.pin}"}
