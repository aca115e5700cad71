"""Services package exports."""

from authcore.services.auth_service import AuthenticationService
from authcore.services.janitor_service import SessionJanitor
from authcore.services.logging_service import configure_logging, get_logger
from authcore.services.otp_service import OneTimePasscodeStore
from authcore.services.password_service import PasswordHasher
from authcore.services.rate_limit_service import RateLimiter
from authcore.services.session_service import SessionStore
from authcore.services.sms_service import (
    MockSMSProvider,
    SMSSender,
    TwilioSMSProvider,
    create_sms_service,
)
from authcore.services.user_service import IdentityRegistry

__all__ = [
    "AuthenticationService",
    "IdentityRegistry",
    "MockSMSProvider",
    "OneTimePasscodeStore",
    "PasswordHasher",
    "RateLimiter",
    "SMSSender",
    "SessionJanitor",
    "SessionStore",
    "TwilioSMSProvider",
    "configure_logging",
    "create_sms_service",
    "get_logger",
]
