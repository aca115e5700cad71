"""Unit tests for the error taxonomy and settings."""

import pytest
from pydantic import ValidationError

from authcore.config import Settings
from authcore.database import affected_rows
from authcore.errors import (
    AuthError,
    DuplicateError,
    ErrorCode,
    HashingError,
    generic_auth_failure,
    internal_failure,
)


class TestAuthError:
    def test_to_dict(self):
        error = AuthError("Failed to send OTP", ErrorCode.OTP_SEND_FAILED, 500)
        assert error.to_dict() == {"error": "Failed to send OTP", "code": "OTP_SEND_FAILED"}
        assert str(error) == "Failed to send OTP"

    def test_default_status(self):
        assert AuthError("x", ErrorCode.AUTH_FAILED).status_code == 400

    def test_duplicate_error(self):
        error = DuplicateError("Username")
        assert isinstance(error, AuthError)
        assert error.field == "Username"
        assert error.message == "Username already exists"
        assert error.status_code == 409

    def test_hashing_error(self):
        error = HashingError()
        assert error.code == ErrorCode.HASHING_FAILED
        assert error.status_code == 500

    def test_generic_failure_is_stable(self):
        a, b = generic_auth_failure(), generic_auth_failure()
        assert (a.message, a.code, a.status_code) == (b.message, b.code, b.status_code)
        assert a.status_code == 401

    def test_internal_failure_hides_detail(self):
        error = internal_failure()
        assert error.code == ErrorCode.INTERNAL_ERROR
        assert error.status_code == 500


class TestAffectedRows:
    @pytest.mark.parametrize(
        "status,expected",
        [("DELETE 3", 3), ("UPDATE 0", 0), ("INSERT 0 1", 1), ("", 0), (None, 0)],
    )
    def test_parses_command_status(self, status, expected):
        assert affected_rows(status) == expected


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.session_expiry_days == 7
        assert settings.otp_expiry_minutes == 5
        assert settings.rate_limit_attempts == 5
        assert settings.rate_limit_window_minutes == 15
        assert settings.sms_provider == "mock"

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("OTP_EXPIRY_MINUTES", "10")
        monkeypatch.setenv("SESSION_EXPIRY_DAYS", "30")

        settings = Settings()

        assert settings.otp_expiry_minutes == 10
        assert settings.session_expiry_days == 30

    @pytest.mark.parametrize("field", ["otp_expiry_minutes", "session_expiry_days"])
    def test_rejects_non_positive(self, field):
        with pytest.raises(ValidationError):
            Settings(**{field: 0})

    def test_rejects_unknown_provider(self):
        with pytest.raises(ValidationError):
            Settings(sms_provider="carrier-pigeon")
