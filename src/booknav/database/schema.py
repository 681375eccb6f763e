"""
SQLAlchemy database schema for the BookNav library service.

This module defines the tables that back the Pydantic models:

1. users / books / book_copies - staff accounts and the catalog
2. classes / students - the roster
3. checkout_records - the circulation ledger
4. library_settings - a single row of circulation defaults

Status columns reuse the enums from ``booknav.models`` so the ORM and the
API agree on one vocabulary.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship, validates
from sqlalchemy.sql import func

from ..models.book import CopyCondition, CopyStatus
from ..models.circulation import CheckoutStatus
from ..models.user import Role

Base = declarative_base()

# Enum columns store member names, so the partial index below matches names.
OPEN_CHECKOUT_CLAUSE = "status IN ('CHECKED_OUT', 'OVERDUE')"


class User(Base):
    """
    Staff accounts.

    Passwords are stored only as bcrypt hashes. A user owns the books they
    catalogue and the classes they teach.
    """

    __tablename__ = "users"

    id = Column(String(50), primary_key=True)
    username = Column(String(50), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(100), nullable=False)
    role = Column(Enum(Role), nullable=False, default=Role.TEACHER)

    created_at = Column(DateTime, nullable=False, default=func.now())

    books = relationship("Book", back_populates="owner")
    classes = relationship("SchoolClass", back_populates="teacher", cascade="all, delete-orphan")

    __table_args__ = (CheckConstraint("id LIKE 'user_%'", name="check_user_id_format"),)


class Book(Base):
    """
    Books table - bibliographic metadata for one title.

    ``copies`` mirrors the number of rows in book_copies; the catalog
    repository keeps both in step.
    """

    __tablename__ = "books"

    id = Column(String(50), primary_key=True)
    title = Column(String(500), nullable=False)
    author = Column(String(200), nullable=False)
    genre = Column(String(100), nullable=True)
    subject = Column(String(100), nullable=True)
    isbn = Column(String(13), nullable=True)
    published_date = Column(Date, nullable=True)
    pages = Column(Integer, nullable=True)
    reading_level = Column(String(20), nullable=True)
    lexile_score = Column(Integer, nullable=True)
    ar_points = Column(Float, nullable=True)
    cover_image = Column(String(500), nullable=True)
    copies = Column(Integer, nullable=False, default=1)
    owner_id = Column(String(50), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    owner = relationship("User", back_populates="books")
    copy_records = relationship(
        "BookCopy",
        back_populates="book",
        cascade="all, delete-orphan",
        order_by="BookCopy.copy_number",
    )

    __table_args__ = (
        Index("idx_book_title", "title"),
        Index("idx_book_author", "author"),
        Index("idx_book_isbn", "isbn"),
        CheckConstraint("copies >= 1", name="check_copies_positive"),
        CheckConstraint("id LIKE 'book_%'", name="check_book_id_format"),
    )

    @property
    def available_copies(self) -> int:
        """Number of copies currently on the shelf."""
        return sum(1 for copy in self.copy_records if copy.status == CopyStatus.AVAILABLE)


class BookCopy(Base):
    """Book copies table - one row per physical item."""

    __tablename__ = "book_copies"

    id = Column(String(50), primary_key=True)
    book_id = Column(String(50), ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    copy_number = Column(Integer, nullable=True)
    status = Column(Enum(CopyStatus), nullable=False, default=CopyStatus.AVAILABLE)
    condition = Column(Enum(CopyCondition), nullable=False, default=CopyCondition.GOOD)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book = relationship("Book", back_populates="copy_records")
    checkouts = relationship(
        "CheckoutRecord", back_populates="book_copy", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_copy_book", "book_id"),
        Index("idx_copy_status", "status"),
        UniqueConstraint("book_id", "copy_number", name="unique_copy_number"),
        CheckConstraint("id LIKE 'copy_%'", name="check_copy_id_format"),
    )


class SchoolClass(Base):
    """
    Classes table.

    Deleting a class removes its students, and a grade change is copied to
    every student on the roster.
    """

    __tablename__ = "classes"

    id = Column(String(50), primary_key=True)
    name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=False)
    teacher_id = Column(String(50), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    school_year = Column(String(20), nullable=True)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    teacher = relationship("User", back_populates="classes")
    students = relationship(
        "Student",
        back_populates="school_class",
        cascade="all, delete-orphan",
        order_by="Student.created_at",
    )

    __table_args__ = (
        Index("idx_class_teacher", "teacher_id"),
        CheckConstraint("id LIKE 'class_%'", name="check_class_id_format"),
    )

    @property
    def student_ids(self) -> list[str]:
        return [student.id for student in self.students]


class Student(Base):
    """Students table - roster entries that sign in with a PIN."""

    __tablename__ = "students"

    id = Column(String(50), primary_key=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    grade = Column(String(20), nullable=False)
    class_id = Column(String(50), ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    reading_level = Column(String(20), nullable=True)
    pin = Column(String(4), nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    school_class = relationship("SchoolClass", back_populates="students")
    checkouts = relationship(
        "CheckoutRecord", back_populates="student", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_student_pin", "pin"),
        Index("idx_student_class", "class_id"),
        UniqueConstraint("first_name", "last_name", "class_id", name="unique_student_in_class"),
        CheckConstraint("id LIKE 'student_%'", name="check_student_id_format"),
    )

    @validates("pin")
    def validate_pin(self, key, value):  # noqa: ARG002
        """PINs are exactly four digits."""
        if value is None or len(value) != 4 or not value.isdigit():
            raise ValueError("PIN must be exactly 4 digits")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class CheckoutRecord(Base):
    """
    Checkout records table - the circulation ledger.

    The partial unique index allows at most one open record per copy, so a
    second concurrent checkout of the same copy fails at commit time.
    """

    __tablename__ = "checkout_records"

    id = Column(String(50), primary_key=True)
    book_copy_id = Column(
        String(50), ForeignKey("book_copies.id", ondelete="CASCADE"), nullable=False
    )
    student_id = Column(String(50), ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    checkout_date = Column(DateTime, nullable=False, default=func.now())
    due_date = Column(Date, nullable=False)
    return_date = Column(DateTime, nullable=True)
    status = Column(Enum(CheckoutStatus), nullable=False, default=CheckoutStatus.CHECKED_OUT)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    book_copy = relationship("BookCopy", back_populates="checkouts")
    student = relationship("Student", back_populates="checkouts")

    __table_args__ = (
        Index("idx_checkout_copy", "book_copy_id"),
        Index("idx_checkout_student", "student_id"),
        Index("idx_checkout_status", "status"),
        Index("idx_checkout_due_date", "due_date"),
        Index(
            "unique_open_checkout_per_copy",
            "book_copy_id",
            unique=True,
            sqlite_where=text(OPEN_CHECKOUT_CLAUSE),
            postgresql_where=text(OPEN_CHECKOUT_CLAUSE),
        ),
        CheckConstraint("id LIKE 'checkout_%'", name="check_checkout_id_format"),
    )


class LibrarySettings(Base):
    """Library settings table - a single row keyed by ``default``."""

    __tablename__ = "library_settings"

    id = Column(String(20), primary_key=True, default="default")
    default_due_days = Column(Integer, nullable=False, default=14)
    max_checkout_books = Column(Integer, nullable=False, default=5)

    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("default_due_days >= 1", name="check_due_days_positive"),
        CheckConstraint("max_checkout_books >= 1", name="check_max_checkouts_positive"),
    )
