"""HTTP routers, one per area of the library."""

from . import auth, books, checkouts, classes, library, students

ROUTERS = [
    auth.router,
    books.router,
    classes.router,
    students.router,
    checkouts.router,
    library.router,
]

__all__ = ["ROUTERS"]
