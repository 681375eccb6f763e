"""Library settings repository: one row of circulation defaults."""

import logging

from pydantic import Field

from ..models.circulation import LibrarySettings as LibrarySettingsModel
from .repository import UpdateSchema
from .schema import LibrarySettings as LibrarySettingsDB
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = "default"


class SettingsUpdateSchema(UpdateSchema):
    default_due_days: int | None = Field(None, ge=1, le=365)
    max_checkout_books: int | None = Field(None, ge=1, le=100)


class SettingsRepository:
    """
    Reads and writes the library settings row.

    The row is created on first read from ``defaults`` (normally built from
    the application config).
    """

    def __init__(self, session, defaults: LibrarySettingsModel | None = None):
        self.session = session
        self.defaults = defaults or LibrarySettingsModel()

    def _load(self) -> LibrarySettingsDB:
        row = safe_query(
            self.session,
            lambda s: s.get(LibrarySettingsDB, SETTINGS_ROW_ID),
            "Failed to load library settings",
        )
        if row is None:
            row = LibrarySettingsDB(id=SETTINGS_ROW_ID, **self.defaults.model_dump())
            self.session.add(row)
            safe_commit(self.session, "create library settings")
            logger.info("Created library settings from defaults")
        return row

    def get(self) -> LibrarySettingsModel:
        return LibrarySettingsModel.model_validate(self._load())

    def update(self, data: SettingsUpdateSchema) -> LibrarySettingsModel:
        row = self._load()
        for field, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(row, field, value)
        safe_commit(self.session, "update library settings")
        self.session.refresh(row)
        logger.info(
            "Library settings now due_days=%d max_books=%d",
            row.default_due_days,
            row.max_checkout_books,
        )
        return LibrarySettingsModel.model_validate(row)
