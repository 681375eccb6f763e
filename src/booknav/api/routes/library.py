"""Library settings routes."""

from fastapi import APIRouter

from ...database import SettingsRepository, SettingsUpdateSchema
from ...models.circulation import LibrarySettings
from ..dependencies import ConfigDep, SessionDep, StaffPrincipal, library_defaults

router = APIRouter(prefix="/library", tags=["library"])


@router.get("/settings", response_model=LibrarySettings)
def get_settings(
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
    config: ConfigDep,
) -> LibrarySettings:
    return SettingsRepository(session, library_defaults(config)).get()


@router.put("/settings", response_model=LibrarySettings)
def update_settings(
    data: SettingsUpdateSchema,
    principal: StaffPrincipal,  # noqa: ARG001
    session: SessionDep,
    config: ConfigDep,
) -> LibrarySettings:
    return SettingsRepository(session, library_defaults(config)).update(data)
