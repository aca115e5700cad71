"""Error taxonomy for the authentication core.

Every domain failure surfaces as an ``AuthError`` carrying a human-readable
message, a machine-readable code and the HTTP status a caller should map it
to. Storage driver and transport errors never cross the public API; they are
logged server-side and replaced by one of these.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error codes returned to callers."""

    AUTH_FAILED = "AUTH_FAILED"
    OTP_INVALID = "OTP_INVALID"
    OTP_EXPIRED = "OTP_EXPIRED"
    OTP_SEND_FAILED = "OTP_SEND_FAILED"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    DUPLICATE_ERROR = "DUPLICATE_ERROR"
    SESSION_FAILED = "SESSION_FAILED"
    HASHING_FAILED = "HASHING_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuthError(Exception):
    """Base authentication failure."""

    def __init__(self, message: str, code: ErrorCode, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> dict:
        """Serializable payload for API responses."""
        return {"error": self.message, "code": self.code.value}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, {self.code.value}, {self.status_code})"


class DuplicateError(AuthError):
    """An identity value (username, mobile number) is already registered."""

    def __init__(self, field: str):
        super().__init__(f"{field} already exists", ErrorCode.DUPLICATE_ERROR, 409)
        self.field = field


class HashingError(AuthError):
    """The password hashing primitive failed or a stored hash is malformed."""

    def __init__(self, message: str = "Password hashing failed"):
        super().__init__(message, ErrorCode.HASHING_FAILED, 500)


class RateLimitError(AuthError):
    """Too many failed attempts for one identifier.

    ``retry_after`` is the number of seconds until the window resets.
    """

    def __init__(self, retry_after: int):
        super().__init__(
            "Too many attempts. Please try again later.",
            ErrorCode.RATE_LIMITED,
            429,
        )
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class ConfigurationError(Exception):
    """Settings are missing or inconsistent for the selected provider."""


def generic_auth_failure() -> AuthError:
    """The single error used for every unknown-identity or bad-credential case."""
    return AuthError("Authentication failed", ErrorCode.AUTH_FAILED, 401)


def internal_failure() -> AuthError:
    """Stand-in for storage failures whose detail stays in server logs."""
    return AuthError("Internal authentication error", ErrorCode.INTERNAL_ERROR, 500)
