"""Auth request payload models with validation.

The authentication core trusts its callers to validate input shape; these
models are what the HTTP layer is expected to parse requests into.
"""

import re
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field, field_validator

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
OTP_CODE_PATTERN = re.compile(r"^\d{6}$")


def _check_mobile_number(v: str) -> str:
    if not E164_PATTERN.fullmatch(v):
        raise ValueError("Mobile number must be in E.164 format (e.g., +1234567890)")
    return v


MobileNumber = Annotated[str, AfterValidator(_check_mobile_number)]


class CredentialsRegistrationRequest(BaseModel):
    """Username/password registration.

    Attributes:
        username: 3-30 chars, letters, numbers and underscores
        password: 8-100 chars
    """

    username: str = Field(..., min_length=3, max_length=30)
    password: str = Field(..., min_length=8, max_length=100)

    @field_validator("username")
    @classmethod
    def username_valid_chars(cls, v: str) -> str:
        """Ensure username contains only alphanumeric characters or underscores."""
        if not USERNAME_PATTERN.fullmatch(v):
            raise ValueError(
                "Username can only contain letters, numbers, and underscores"
            )
        return v


class MobileRegistrationRequest(BaseModel):
    """Mobile-number registration."""

    mobile_number: MobileNumber


class CredentialsLoginRequest(BaseModel):
    """Username/password login. No format rules beyond presence."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class OTPRequest(BaseModel):
    """Ask for a code to be sent to a registered mobile number."""

    mobile_number: MobileNumber


class OTPVerifyRequest(BaseModel):
    """Submit a received code."""

    mobile_number: MobileNumber
    code: str

    @field_validator("code")
    @classmethod
    def code_six_digits(cls, v: str) -> str:
        """Codes are compared as strings, so leading zeros matter."""
        if not OTP_CODE_PATTERN.fullmatch(v):
            raise ValueError("OTP code must be exactly 6 digits")
        return v
