"""Exceptions raised by the persistence layer."""


class RepositoryException(Exception):
    """Base exception for repository operations."""


class NotFoundError(RepositoryException):
    """Raised when an entity is not found."""


class DuplicateError(RepositoryException):
    """Raised when attempting to create a duplicate entity."""


class ConflictError(RepositoryException):
    """Raised when an operation clashes with the current state of an entity."""


class InvalidInputError(RepositoryException):
    """Raised when a value is well-formed but not acceptable for the operation."""
