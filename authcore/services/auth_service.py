"""Authentication flows for the dual (credentials / mobile OTP) system.

Every unknown-identity and bad-credential branch raises the same
``generic_auth_failure()`` so callers cannot tell which accounts exist.
The one deliberate exception is an expired OTP, reported as OTP_EXPIRED:
the caller has already shown they receive texts at that number.
"""

from contextlib import asynccontextmanager
from typing import Optional
from uuid import UUID

import structlog

from authcore.errors import AuthError, ErrorCode, RateLimitError, generic_auth_failure
from authcore.models.session import Session
from authcore.models.user import User
from authcore.services.logging_service import mask_mobile_number
from authcore.services.otp_service import INVALID_CODE_REASON, OneTimePasscodeStore
from authcore.services.password_service import PasswordHasher
from authcore.services.rate_limit_service import RateLimiter
from authcore.services.session_service import SessionStore
from authcore.services.sms_service import SMSSender
from authcore.services.user_service import IdentityRegistry

logger = structlog.get_logger(__name__)


class AuthenticationService:
    """Orchestrates registration, OTP and credential login into sessions.

    Collaborators are passed in; the service holds no state of its own
    between calls.
    """

    def __init__(
        self,
        sms_sender: SMSSender,
        rate_limiter: Optional[RateLimiter] = None,
        registry: Optional[IdentityRegistry] = None,
        otp_store: Optional[OneTimePasscodeStore] = None,
        session_store: Optional[SessionStore] = None,
        password_hasher: Optional[PasswordHasher] = None,
    ):
        self.password_hasher = password_hasher or PasswordHasher()
        self.registry = registry or IdentityRegistry(self.password_hasher)
        self.otp_store = otp_store or OneTimePasscodeStore()
        self.session_store = session_store or SessionStore()
        self.sms_sender = sms_sender
        self.rate_limiter = rate_limiter

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register_with_credentials(self, username: str, password: str) -> User:
        return await self.registry.register_with_credentials(username, password)

    async def register_with_mobile(self, mobile_number: str) -> User:
        return await self.registry.register_with_mobile(mobile_number)

    # ------------------------------------------------------------------
    # Mobile OTP
    # ------------------------------------------------------------------

    async def request_otp(self, mobile_number: str) -> None:
        """Issue a code for a registered number and text it.

        If delivery fails the issued code stays in place; the next request
        supersedes it.

        Raises:
            AuthError: AUTH_FAILED for unknown numbers, OTP_SEND_FAILED if the
                transport fails, RATE_LIMITED when blocked
        """
        async with self._attempt(mobile_number):
            user = await self.registry.get_by_mobile(mobile_number)
            if user is None:
                logger.info(
                    "otp_request_unknown_number",
                    mobile_number=mask_mobile_number(mobile_number),
                )
                raise generic_auth_failure()

            code = await self.otp_store.issue(user.id)

            try:
                await self.sms_sender.send_otp(mobile_number, code)
            except Exception as e:
                logger.error(
                    "otp_send_failed",
                    user_id=str(user.id),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise AuthError("Failed to send OTP", ErrorCode.OTP_SEND_FAILED, 500) from e

            logger.info("otp_requested", user_id=str(user.id))

    async def verify_otp(self, mobile_number: str, code: str) -> Session:
        """Consume a code and open a session.

        Raises:
            AuthError: AUTH_FAILED for unknown numbers, OTP_EXPIRED or
                OTP_INVALID for rejected codes, RATE_LIMITED when blocked
        """
        async with self._attempt(mobile_number):
            user = await self.registry.get_by_mobile(mobile_number)
            if user is None:
                logger.info(
                    "otp_verify_unknown_number",
                    mobile_number=mask_mobile_number(mobile_number),
                )
                raise generic_auth_failure()

            validation = await self.otp_store.validate(user.id, code)

            if not validation.valid:
                error_code = ErrorCode.OTP_EXPIRED if validation.is_expired else ErrorCode.OTP_INVALID
                logger.info("otp_verify_failed", user_id=str(user.id), error_code=error_code.value)
                raise AuthError(validation.reason or "Invalid OTP", error_code, 401)

            # Single use: consume before the session exists. A concurrent
            # verify that consumed it first wins.
            if not await self.otp_store.invalidate(validation.otp_id):
                logger.info("otp_verify_failed", user_id=str(user.id), error_code=ErrorCode.OTP_INVALID.value)
                raise AuthError(INVALID_CODE_REASON, ErrorCode.OTP_INVALID, 401)

            session = await self.session_store.create(user.id)
            logger.info("otp_login_succeeded", user_id=str(user.id))
            return session

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    async def login_with_credentials(self, username: str, password: str) -> Session:
        """Check a username/password pair and open a session.

        Unknown username, mobile-only account and wrong password all raise
        the identical AUTH_FAILED error.
        """
        async with self._attempt(username):
            user = await self.registry.get_by_username(username)

            if user is None or user.password_hash is None:
                logger.info("login_failed", reason="unknown_identity")
                raise generic_auth_failure()

            if not await self.password_hasher.verify_async(password, user.password_hash):
                logger.info("login_failed", reason="bad_password", user_id=str(user.id))
                raise generic_auth_failure()

            session = await self.session_store.create(user.id)
            logger.info("credentials_login_succeeded", user_id=str(user.id))
            return session

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def get_session(self, token: str) -> Optional[Session]:
        """Resolve a bearer token; may delete the row if it has expired."""
        return await self.session_store.validate(token)

    async def logout(self, token: str) -> bool:
        return await self.session_store.invalidate(token)

    async def logout_everywhere(self, user_id: UUID) -> int:
        return await self.session_store.invalidate_all_for_user(user_id)

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _attempt(self, identifier: str):
        """Refuse blocked identifiers, then record how the attempt ended."""
        if self.rate_limiter is not None and await self.rate_limiter.is_rate_limited(identifier):
            raise RateLimitError(await self.rate_limiter.retry_after(identifier))

        try:
            yield
        except AuthError:
            await self._record_attempt(identifier, success=False)
            raise

        await self._record_attempt(identifier, success=True)

    async def _record_attempt(self, identifier: str, success: bool) -> None:
        if self.rate_limiter is not None:
            await self.rate_limiter.record_attempt(identifier, success)
