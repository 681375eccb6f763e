"""
FastAPI dependencies: configuration, per-request sessions and the role gate.
"""

from collections.abc import Generator
from typing import Annotated

from fastapi import Depends, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from ..auth import Principal, authenticate, parse_credential, require_role
from ..config import AppConfig
from ..database import CirculationRepository, DatabaseManager
from ..models.circulation import LibrarySettings
from ..models.user import Role

# The header carries either "Bearer <token>" or "PIN <digits>".
authorization_header = APIKeyHeader(name="Authorization", auto_error=False)


def get_app_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """Open one session per request from the application's DatabaseManager."""
    manager: DatabaseManager = request.app.state.db
    session = manager.create_session()
    try:
        yield session
    finally:
        session.close()


ConfigDep = Annotated[AppConfig, Depends(get_app_config)]
SessionDep = Annotated[Session, Depends(get_db_session)]


def get_current_principal(
    session: SessionDep,
    config: ConfigDep,
    authorization: str | None = Security(authorization_header),
) -> Principal:
    return authenticate(parse_credential(authorization), session, config)


def require_roles(*roles: Role):
    """Build a dependency that admits only principals with one of ``roles``."""

    def dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        return require_role(principal, *roles)

    return dependency


def library_defaults(config: AppConfig) -> LibrarySettings:
    """Settings used until staff save their own."""
    return LibrarySettings(
        default_due_days=config.default_due_days,
        max_checkout_books=config.max_checkout_books,
    )


def get_circulation_repository(session: SessionDep, config: ConfigDep) -> CirculationRepository:
    return CirculationRepository(session, library_defaults(config))


AnyPrincipal = Annotated[Principal, Depends(get_current_principal)]
StaffPrincipal = Annotated[Principal, Depends(require_roles(Role.TEACHER))]
CirculationPrincipal = Annotated[Principal, Depends(require_roles(Role.TEACHER, Role.STUDENT))]
CirculationDep = Annotated[CirculationRepository, Depends(get_circulation_repository)]
