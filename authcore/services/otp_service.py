"""One-time passcode lifecycle: issue, validate, invalidate."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from authcore.config import get_settings
from authcore.database import STORAGE_ERRORS, affected_rows, get_pool
from authcore.errors import internal_failure
from authcore.models.otp import OneTimePasscode, OTPValidation

logger = structlog.get_logger(__name__)

OTP_CODE_LENGTH = 6
INVALID_CODE_REASON = "Invalid OTP code"
EXPIRED_CODE_REASON = "OTP has expired"


class OneTimePasscodeStore:
    """Short-lived numeric codes, at most one active per user.

    Security rests on the short TTL, single use and the caller's rate
    limiting, not on the code being derived from a secret.
    """

    def __init__(self, default_ttl_minutes: Optional[int] = None):
        self.default_ttl_minutes = default_ttl_minutes or get_settings().otp_expiry_minutes

    @staticmethod
    def generate_code() -> str:
        """Draw a uniformly random code in [000000, 999999]."""
        return str(secrets.randbelow(10**OTP_CODE_LENGTH)).zfill(OTP_CODE_LENGTH)

    async def issue(self, user_id: UUID, ttl_minutes: Optional[int] = None) -> str:
        """Supersede the user's active codes and store a fresh one.

        Runs in one transaction holding the owning user row lock, so two
        concurrent issues for the same user can never both stay active.

        Args:
            user_id: Owner of the new code
            ttl_minutes: Validity window (defaults to settings.otp_expiry_minutes)

        Returns:
            The plaintext code; delivery is the caller's job
        """
        ttl_minutes = ttl_minutes or self.default_ttl_minutes
        code = self.generate_code()
        otp_id = uuid4()
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(minutes=ttl_minutes)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute(
                        "SELECT id FROM users WHERE id = $1 FOR UPDATE",
                        user_id,
                    )
                    superseded = await conn.execute(
                        """
                        UPDATE otps
                        SET is_used = TRUE
                        WHERE user_id = $1 AND is_used = FALSE AND expires_at > $2
                        """,
                        user_id,
                        now,
                    )
                    await conn.execute(
                        """
                        INSERT INTO otps (id, user_id, code, expires_at, is_used, created_at)
                        VALUES ($1, $2, $3, $4, FALSE, $5)
                        """,
                        otp_id,
                        user_id,
                        code,
                        expires_at,
                        now,
                    )
        except STORAGE_ERRORS as e:
            logger.error("otp_issue_failed", user_id=str(user_id), error=str(e))
            raise internal_failure() from e

        logger.info(
            "otp_issued",
            user_id=str(user_id),
            otp_id=str(otp_id),
            superseded=affected_rows(superseded),
            expires_at=expires_at.isoformat(),
        )
        return code

    async def validate(self, user_id: UUID, code: str) -> OTPValidation:
        """Check a submitted code without consuming it.

        Wrong and already-used codes give the same reason so a caller learns
        nothing about past codes. Expiry is reported separately.
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    """
                    SELECT id, user_id, code, expires_at, is_used, created_at
                    FROM otps
                    WHERE user_id = $1 AND code = $2 AND is_used = FALSE
                    ORDER BY created_at DESC
                    LIMIT 1
                    """,
                    user_id,
                    code,
                )
        except STORAGE_ERRORS as e:
            logger.error("otp_lookup_failed", user_id=str(user_id), error=str(e))
            raise internal_failure() from e

        if row is None:
            logger.info("otp_rejected", user_id=str(user_id), reason="invalid")
            return OTPValidation(valid=False, reason=INVALID_CODE_REASON)

        otp = OneTimePasscode(**dict(row))

        if otp.expires_at <= datetime.now(timezone.utc):
            logger.info("otp_rejected", user_id=str(user_id), otp_id=str(otp.id), reason="expired")
            return OTPValidation(valid=False, reason=EXPIRED_CODE_REASON)

        return OTPValidation(valid=True, otp_id=otp.id)

    async def invalidate(self, otp_id: UUID) -> bool:
        """Consume a code. Safe to repeat.

        The update only matches an unused row, so of two concurrent callers
        exactly one gets True.

        Returns:
            True if this call consumed the code, False if it was already used
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.execute(
                    "UPDATE otps SET is_used = TRUE WHERE id = $1 AND is_used = FALSE",
                    otp_id,
                )
        except STORAGE_ERRORS as e:
            logger.error("otp_invalidate_failed", otp_id=str(otp_id), error=str(e))
            raise internal_failure() from e

        consumed = affected_rows(result) > 0
        logger.info("otp_invalidated", otp_id=str(otp_id), consumed=consumed)
        return consumed
