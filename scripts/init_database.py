#!/usr/bin/env python3
"""
Initialize the BookNav database.

This script:
1. Creates all database tables
2. Optionally creates a staff account
3. Optionally loads a small sample catalog and roster

Usage:
    python scripts/init_database.py [--drop-existing] [--staff-user NAME --staff-password PW]
                                    [--sample-data] [--database-url URL]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from booknav.config import get_config
from booknav.database import (
    BookCreateSchema,
    BookRepository,
    ClassCreateSchema,
    ClassRepository,
    DatabaseManager,
    StudentRepository,
    UserCreateSchema,
    UserRepository,
)

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {
    "users",
    "books",
    "book_copies",
    "classes",
    "students",
    "checkout_records",
    "library_settings",
}

SAMPLE_BOOKS = [
    {
        "title": "Charlotte's Web",
        "author": "E. B. White",
        "genre": "Fiction",
        "isbn": "978-0-06-440055-8",
        "reading_level": "4.4",
        "copies": 3,
    },
    {
        "title": "Holes",
        "author": "Louis Sachar",
        "genre": "Fiction",
        "isbn": "9780440414803",
        "reading_level": "4.6",
        "copies": 2,
    },
    {
        "title": "The Magic School Bus Inside the Human Body",
        "author": "Joanna Cole",
        "genre": "Nonfiction",
        "subject": "Science",
        "copies": 1,
    },
]

SAMPLE_STUDENTS = [
    {"first_name": "Ava", "last_name": "Lopez", "pin": "1111"},
    {"first_name": "Noah", "last_name": "Kim", "pin": "2222"},
    {"first_name": "Mia", "last_name": "Patel", "pin": "3333"},
]


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the BookNav database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument("--staff-user", help="Create a staff account with this username")
    parser.add_argument("--staff-password", help="Password for --staff-user")
    parser.add_argument(
        "--staff-email",
        help="Email for --staff-user (default: <username>@example.org)",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load sample books, a class and students (requires --staff-user)",
    )
    parser.add_argument("--database-url", help="Override the configured database URL")

    args = parser.parse_args()

    if args.staff_user and not args.staff_password:
        parser.error("--staff-password is required with --staff-user")
    if args.sample_data and not args.staff_user:
        parser.error("--sample-data needs a --staff-user to own the sample class")

    db_manager = DatabaseManager(args.database_url or get_config().get_database_url())

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        logger.info("Creating database schema...")
        db_manager.init_database(drop_existing=args.drop_existing)

        tables = set(inspect(db_manager.engine).get_table_names())
        missing_tables = EXPECTED_TABLES - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", ", ".join(sorted(missing_tables)))
            sys.exit(1)
        logger.info("Created tables: %s", ", ".join(sorted(tables)))

        if args.staff_user:
            with db_manager.session_scope() as session:
                user = UserRepository(session).create(
                    UserCreateSchema(
                        username=args.staff_user,
                        email=args.staff_email or f"{args.staff_user}@example.org",
                        password=args.staff_password,
                    )
                )
                logger.info("Created staff user %s", user.username)

                if args.sample_data:
                    load_sample_data(session, user.id)

        logger.info("Database initialization complete")

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


def load_sample_data(session, teacher_id: str) -> None:
    """Catalogue a few books and enroll one class of students."""
    books = BookRepository(session)
    for book in SAMPLE_BOOKS:
        created = books.create(BookCreateSchema(**book), owner_id=teacher_id)
        logger.info("Catalogued %s (%d copies)", created.title, created.copies)

    school_class = ClassRepository(session).create(
        ClassCreateSchema(name="Room 12", grade="4", school_year="2024-2025"),
        teacher_id=teacher_id,
    )
    result = StudentRepository(session).bulk_create(
        [{**student, "class_id": school_class.id} for student in SAMPLE_STUDENTS]
    )
    logger.info("Enrolled %d students in %s", result.success, school_class.name)


if __name__ == "__main__":
    main()
