"""HTTP interface for the BookNav library service."""

from .app import create_app

__all__ = ["create_app"]
