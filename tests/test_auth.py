"""Tests for credential parsing, staff tokens and student PIN sign-in."""

from datetime import UTC, datetime, timedelta

import jwt
import pytest

from booknav.auth import (
    AuthenticationError,
    AuthorizationError,
    Principal,
    StaffToken,
    StudentPin,
    authenticate,
    decode_token,
    issue_token,
    parse_credential,
    require_role,
)
from booknav.models import Role, StaffUser


@pytest.fixture
def staff_user() -> StaffUser:
    return StaffUser(id="user_abc123", username="msfrizzle", email="frizzle@school.org")


class TestParseCredential:
    def test_bearer_is_staff_token(self):
        assert parse_credential("Bearer abc.def.ghi") == StaffToken(token="abc.def.ghi")

    def test_pin_scheme_is_student(self):
        credential = parse_credential("PIN 0423")
        assert isinstance(credential, StudentPin)
        assert credential.pin == "0423"

    def test_scheme_is_case_insensitive(self):
        assert parse_credential("bearer xyz").kind == "staff"
        assert parse_credential("pin 1111").kind == "student"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic dXNlcjpwYXNz"])
    def test_unusable_headers(self, header):
        with pytest.raises(AuthenticationError):
            parse_credential(header)


class TestStaffTokens:
    def test_round_trip(self, staff_user, test_config):
        principal = decode_token(issue_token(staff_user, test_config), test_config)

        assert principal == Principal(id="user_abc123", role=Role.TEACHER, name="msfrizzle")
        assert principal.is_staff

    def test_expired_token(self, test_config):
        past = datetime.now(UTC) - timedelta(hours=2)
        token = jwt.encode(
            {"sub": "user_abc123", "role": "teacher", "iat": past, "exp": past + timedelta(hours=1)},
            test_config.jwt_secret,
            algorithm="HS256",
        )
        with pytest.raises(AuthenticationError, match="expired"):
            decode_token(token, test_config)

    def test_wrong_secret(self, staff_user, test_config):
        forged = test_config.model_copy(update={"jwt_secret": "another-secret-0123456789"})
        with pytest.raises(AuthenticationError, match="Invalid token"):
            decode_token(issue_token(staff_user, forged), test_config)

    def test_token_without_expiry_rejected(self, test_config):
        token = jwt.encode({"sub": "user_abc123"}, test_config.jwt_secret, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token, test_config)


class TestAuthenticate:
    def test_student_pin(self, test_db_session, test_config, library):
        principal = authenticate(StudentPin(pin="1111"), test_db_session, test_config)

        assert principal.id == library.student.id
        assert principal.role == Role.STUDENT
        assert principal.name == "Ava Lopez"
        assert not principal.is_staff

    def test_unknown_pin(self, test_db_session, test_config, library):  # noqa: ARG002
        with pytest.raises(AuthenticationError, match="Invalid PIN"):
            authenticate(StudentPin(pin="9999"), test_db_session, test_config)

    def test_malformed_pin(self, test_db_session, test_config):
        with pytest.raises(AuthenticationError, match="4 digits"):
            authenticate(StudentPin(pin="12a4"), test_db_session, test_config)

    def test_staff_token(self, test_db_session, test_config, library):
        token = issue_token(library.teacher, test_config)
        principal = authenticate(StaffToken(token=token), test_db_session, test_config)
        assert principal.id == library.teacher.id


class TestRequireRole:
    def test_allowed(self):
        principal = Principal(id="student_abc123", role=Role.STUDENT, name="Ava Lopez")
        assert require_role(principal, Role.TEACHER, Role.STUDENT) is principal

    def test_denied(self):
        principal = Principal(id="student_abc123", role=Role.STUDENT, name="Ava Lopez")
        with pytest.raises(AuthorizationError):
            require_role(principal, Role.TEACHER)
