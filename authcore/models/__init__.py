"""Models package exports."""

from authcore.models.auth import (
    CredentialsLoginRequest,
    CredentialsRegistrationRequest,
    MobileRegistrationRequest,
    OTPRequest,
    OTPVerifyRequest,
)
from authcore.models.otp import OneTimePasscode, OTPValidation
from authcore.models.session import Session
from authcore.models.user import (
    CredentialsIdentity,
    Identity,
    MobileIdentity,
    User,
    UserProfile,
)

__all__ = [
    "CredentialsIdentity",
    "CredentialsLoginRequest",
    "CredentialsRegistrationRequest",
    "Identity",
    "MobileIdentity",
    "MobileRegistrationRequest",
    "OneTimePasscode",
    "OTPRequest",
    "OTPValidation",
    "OTPVerifyRequest",
    "Session",
    "User",
    "UserProfile",
]
