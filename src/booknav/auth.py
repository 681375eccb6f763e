"""
Access control for the BookNav library service.

Two kinds of caller reach the API:

1. **Staff** sign in with a username and password and then send
   ``Authorization: Bearer <token>``, a JWT signed with the configured secret
2. **Students** have no account; they send ``Authorization: PIN <4 digits>``
   and are matched against the roster

The Authorization scheme alone decides which kind of credential a request
carries. Both resolve to a Principal, which the role gate then checks.
"""

import logging
import re
from datetime import UTC, datetime, timedelta
from typing import Literal

import jwt
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from .config import AppConfig
from .database.student_repository import StudentRepository
from .models.user import Role, StaffUser

logger = logging.getLogger(__name__)

PIN_RE = re.compile(r"^\d{4}$")


class AuthenticationError(Exception):
    """Raised when a request carries no usable credential."""


class AuthorizationError(Exception):
    """Raised when an authenticated caller may not perform an operation."""


class StaffToken(BaseModel):
    kind: Literal["staff"] = "staff"
    token: str


class StudentPin(BaseModel):
    kind: Literal["student"] = "student"
    pin: str


Credential = StaffToken | StudentPin


class Principal(BaseModel):
    """The authenticated caller."""

    id: str
    role: Role
    name: str

    model_config = ConfigDict(frozen=True)

    @property
    def is_staff(self) -> bool:
        return self.role == Role.TEACHER


def parse_credential(authorization: str | None) -> Credential:
    """
    Split an Authorization header into a tagged credential.

    Raises:
        AuthenticationError: If the header is missing, the scheme is unknown
            or the secret is empty
    """
    if not authorization:
        raise AuthenticationError("Authentication required")

    scheme, _, secret = authorization.strip().partition(" ")
    secret = secret.strip()
    if not secret:
        raise AuthenticationError("Authentication required")

    scheme = scheme.lower()
    if scheme == "bearer":
        return StaffToken(token=secret)
    if scheme == "pin":
        return StudentPin(pin=secret)
    raise AuthenticationError(f"Unsupported authorization scheme: {scheme}")


def issue_token(user: StaffUser, config: AppConfig) -> str:
    """Sign a staff token carrying the user's id, username and role."""
    now = datetime.now(UTC)
    role = user.role.value if isinstance(user.role, Role) else user.role
    claims = {
        "sub": user.id,
        "username": user.username,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=config.token_ttl_hours),
    }
    return jwt.encode(claims, config.jwt_secret, algorithm=config.jwt_algorithm)


def decode_token(token: str, config: AppConfig) -> Principal:
    """
    Verify a staff token and trust its claims.

    Raises:
        AuthenticationError: If the token is expired, malformed or unsigned
    """
    try:
        claims = jwt.decode(
            token,
            config.jwt_secret,
            algorithms=[config.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthenticationError("Invalid token") from e

    try:
        role = Role(claims.get("role", Role.TEACHER.value))
    except ValueError as e:
        raise AuthenticationError("Invalid token") from e

    return Principal(id=claims["sub"], role=role, name=claims.get("username", ""))


def authenticate(credential: Credential, session: Session, config: AppConfig) -> Principal:
    """
    Resolve a credential to a principal.

    Raises:
        AuthenticationError: If the token does not verify or no student has the PIN
    """
    if isinstance(credential, StaffToken):
        return decode_token(credential.token, config)

    if not PIN_RE.match(credential.pin):
        raise AuthenticationError("PIN must be 4 digits")

    student = StudentRepository(session).find_by_pin(credential.pin)
    if student is None:
        logger.info("Rejected unknown student PIN")
        raise AuthenticationError("Invalid PIN")

    return Principal(id=student.id, role=Role.STUDENT, name=student.full_name)


def require_role(principal: Principal, *roles: Role) -> Principal:
    """
    Role gate.

    Raises:
        AuthorizationError: If the principal's role is not one of ``roles``
    """
    if principal.role not in roles:
        raise AuthorizationError("You do not have permission to perform this action")
    return principal
