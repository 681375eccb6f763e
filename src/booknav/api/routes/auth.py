"""Staff accounts: registration, login and the current principal."""

import logging

from fastapi import APIRouter, status

from ...auth import AuthenticationError, Principal, issue_token
from ...database import UserCreateSchema, UserRepository
from ...models.user import StaffUser
from ..dependencies import AnyPrincipal, ConfigDep, SessionDep, StaffPrincipal
from ..schemas import LoginRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=StaffUser, status_code=status.HTTP_201_CREATED)
def register(data: UserCreateSchema, session: SessionDep) -> StaffUser:
    return UserRepository(session).create(data)


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, session: SessionDep, config: ConfigDep) -> TokenResponse:
    """Exchange a username and password for a signed staff token."""
    user = UserRepository(session).authenticate(data.username, data.password)
    if user is None:
        raise AuthenticationError("Invalid username or password")

    logger.info("User %s signed in", user.username)
    return TokenResponse(
        access_token=issue_token(user, config),
        expires_in=config.token_ttl_hours * 3600,
        user=user,
    )


@router.get("/me", response_model=Principal)
def me(principal: AnyPrincipal) -> Principal:
    return principal


@router.get("/users", response_model=list[StaffUser])
def list_users(principal: StaffPrincipal, session: SessionDep) -> list[StaffUser]:  # noqa: ARG001
    return UserRepository(session).list_all()


@router.delete("/users/me", status_code=status.HTTP_204_NO_CONTENT)
def delete_me(principal: StaffPrincipal, session: SessionDep) -> None:
    UserRepository(session).delete(principal.id)
