"""Bearer session lifecycle: create, validate, revoke, sweep."""

import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID, uuid4

import structlog

from authcore.config import get_settings
from authcore.database import STORAGE_ERRORS, affected_rows, get_pool
from authcore.errors import AuthError, ErrorCode, internal_failure
from authcore.models.session import Session

logger = structlog.get_logger(__name__)

# 32 random bytes, i.e. 256 bits of entropy, base64url without padding.
TOKEN_BYTES = 32

SESSION_WITH_USER_COLUMNS = """
    s.id, s.user_id, s.token, s.expires_at, s.created_at,
    u.username AS user_username,
    u.mobile_number AS user_mobile_number,
    u.email AS user_email,
    u.name AS user_name,
    u.is_admin AS user_is_admin,
    u.created_at AS user_created_at,
    u.updated_at AS user_updated_at
"""


class SessionStore:
    """Opaque bearer tokens backed by the sessions table.

    Nothing is cached: every validation re-reads the row so revocations take
    effect immediately.
    """

    def __init__(self, default_ttl_days: Optional[int] = None):
        self.default_ttl_days = default_ttl_days or get_settings().session_expiry_days

    @staticmethod
    def generate_token() -> str:
        return secrets.token_urlsafe(TOKEN_BYTES)

    async def create(self, user_id: UUID, ttl_days: Optional[int] = None) -> Session:
        """Insert a new session and return it joined with the owner's profile.

        Args:
            user_id: Authenticated user
            ttl_days: Lifetime (defaults to settings.session_expiry_days)

        Returns:
            The created Session

        Raises:
            AuthError: SESSION_FAILED if the row cannot be written
        """
        ttl_days = ttl_days or self.default_ttl_days
        session_id = uuid4()
        token = self.generate_token()
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(days=ttl_days)

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    WITH s AS (
                        INSERT INTO sessions (id, user_id, token, expires_at, created_at)
                        VALUES ($1, $2, $3, $4, $5)
                        RETURNING id, user_id, token, expires_at, created_at
                    )
                    SELECT {SESSION_WITH_USER_COLUMNS}
                    FROM s
                    JOIN users u ON u.id = s.user_id
                    """,
                    session_id,
                    user_id,
                    token,
                    expires_at,
                    now,
                )
        except STORAGE_ERRORS as e:
            logger.error("session_create_failed", user_id=str(user_id), error=str(e))
            raise AuthError("Failed to create session", ErrorCode.SESSION_FAILED, 500) from e

        if row is None:
            logger.error("session_create_failed", user_id=str(user_id), error="no row returned")
            raise AuthError("Failed to create session", ErrorCode.SESSION_FAILED, 500)

        logger.info(
            "session_created",
            user_id=str(user_id),
            session_id=str(session_id),
            expires_at=expires_at.isoformat(),
        )
        return Session.from_row(row)

    async def validate(self, token: str) -> Optional[Session]:
        """Resolve a bearer token to a live session.

        Side effect: an expired session found here is deleted on the spot.
        Callers that need a read without writes should check
        ``Session.is_expired`` on their own copy and leave removal to
        ``sweep_expired``.

        Returns:
            The Session, or None if the token is unknown or expired
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"""
                    SELECT {SESSION_WITH_USER_COLUMNS}
                    FROM sessions s
                    JOIN users u ON u.id = s.user_id
                    WHERE s.token = $1
                    """,
                    token,
                )

                if row is None:
                    return None

                session = Session.from_row(row)
                if not session.is_expired():
                    return session

                # A concurrent validation may already have removed it; zero rows is fine.
                result = await conn.execute("DELETE FROM sessions WHERE id = $1", session.id)
        except STORAGE_ERRORS as e:
            logger.error("session_validate_failed", error=str(e))
            raise internal_failure() from e

        logger.info(
            "session_expired_removed",
            user_id=str(session.user_id),
            session_id=str(session.id),
            removed=affected_rows(result),
        )
        return None

    async def invalidate(self, token: str) -> bool:
        """Delete the session for a token.

        Returns:
            True if a row was deleted, False for unknown tokens
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM sessions WHERE token = $1",
                    token,
                )
        except STORAGE_ERRORS as e:
            logger.error("session_invalidate_failed", error=str(e))
            raise internal_failure() from e

        deleted = affected_rows(result) > 0
        logger.info("session_invalidated", deleted=deleted)
        return deleted

    async def invalidate_all_for_user(self, user_id: UUID) -> int:
        """Log a user out everywhere.

        Returns:
            Number of sessions removed
        """
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM sessions WHERE user_id = $1",
                    user_id,
                )
        except STORAGE_ERRORS as e:
            logger.error("session_invalidate_all_failed", user_id=str(user_id), error=str(e))
            raise internal_failure() from e

        count = affected_rows(result)
        logger.info("all_user_sessions_invalidated", user_id=str(user_id), count=count)
        return count

    async def sweep_expired(self) -> int:
        """Delete every expired session. Housekeeping, not for the request path.

        Returns:
            Number of sessions removed
        """
        now = datetime.now(timezone.utc)
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                result = await conn.execute(
                    "DELETE FROM sessions WHERE expires_at <= $1",
                    now,
                )
        except STORAGE_ERRORS as e:
            logger.error("session_sweep_failed", error=str(e))
            raise internal_failure() from e

        count = affected_rows(result)
        logger.info("expired_sessions_swept", count=count)
        return count
