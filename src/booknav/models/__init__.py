"""
BookNav Models.

This package contains Pydantic models for all core entities:

- Book, BookCopy: the catalog
- Student, SchoolClass: the roster
- StaffUser: staff accounts
- CheckoutRecord and friends: the circulation ledger
"""

from .book import Book, BookCopy, CopyCondition, CopyStatus
from .circulation import (
    CheckoutAction,
    CheckoutDetail,
    CheckoutRecord,
    CheckoutStatus,
    LibrarySettings,
    ReadingHistoryEntry,
)
from .roster import SchoolClass, Student
from .user import Role, StaffUser

__all__ = [
    "Book",
    "BookCopy",
    "CheckoutAction",
    "CheckoutDetail",
    "CheckoutRecord",
    "CheckoutStatus",
    "CopyCondition",
    "CopyStatus",
    "LibrarySettings",
    "ReadingHistoryEntry",
    "Role",
    "SchoolClass",
    "StaffUser",
    "Student",
]
