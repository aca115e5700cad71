"""Identity registration and user lookups."""

from datetime import datetime, timezone
from typing import Optional, Union
from uuid import UUID, uuid4

import asyncpg
import structlog

from authcore.database import STORAGE_ERRORS, get_pool
from authcore.errors import AuthError, DuplicateError, ErrorCode, internal_failure
from authcore.models.user import CredentialsIdentity, MobileIdentity, User
from authcore.services.logging_service import mask_mobile_number
from authcore.services.password_service import PasswordHasher

logger = structlog.get_logger(__name__)

USER_COLUMNS = """
    id, username, password_hash, mobile_number, email, name,
    is_admin, created_at, updated_at
"""


class IdentityRegistry:
    """Creates users from exactly one proof type and looks them up.

    Uniqueness is enforced by the storage constraints alone. There is no
    exists-then-insert check, so concurrent duplicate registrations resolve
    to one row and one DuplicateError.
    """

    def __init__(self, password_hasher: Optional[PasswordHasher] = None):
        self.password_hasher = password_hasher or PasswordHasher()

    async def register_with_credentials(
        self,
        username: str,
        password: str,
        is_admin: bool = False,
    ) -> User:
        """Create a username/password identity.

        Args:
            username: Unique username (validated by the caller)
            password: Plain-text password (will be hashed)
            is_admin: Grant admin privileges (management CLI only)

        Returns:
            Created User

        Raises:
            DuplicateError: If the username is taken
            AuthError: REGISTRATION_FAILED on any other storage failure
        """
        password_hash = await self.password_hasher.hash_async(password)
        identity = CredentialsIdentity(username=username, password_hash=password_hash)
        user = await self._insert(identity, duplicate_field="Username", is_admin=is_admin)

        logger.info(
            "user_registered",
            user_id=str(user.id),
            method="credentials",
            username=username,
            is_admin=is_admin,
        )
        return user

    async def register_with_mobile(self, mobile_number: str) -> User:
        """Create a mobile-number identity.

        Raises:
            DuplicateError: If the mobile number is taken
            AuthError: REGISTRATION_FAILED on any other storage failure
        """
        identity = MobileIdentity(mobile_number=mobile_number)
        user = await self._insert(identity, duplicate_field="Mobile number")

        logger.info(
            "user_registered",
            user_id=str(user.id),
            method="mobile",
            mobile_number=mask_mobile_number(mobile_number),
        )
        return user

    async def _insert(
        self,
        identity: Union[CredentialsIdentity, MobileIdentity],
        duplicate_field: str,
        is_admin: bool = False,
    ) -> User:
        user = User.from_identity(
            uuid4(),
            identity,
            created_at=datetime.now(timezone.utc),
            is_admin=is_admin,
        )

        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO users (id, username, password_hash, mobile_number, is_admin, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6, $7)
                    """,
                    user.id,
                    user.username,
                    user.password_hash,
                    user.mobile_number,
                    user.is_admin,
                    user.created_at,
                    user.updated_at,
                )
        except asyncpg.UniqueViolationError as e:
            logger.warning(
                "user_registration_duplicate",
                field=duplicate_field,
                constraint=getattr(e, "constraint_name", None),
            )
            raise DuplicateError(duplicate_field) from e
        except STORAGE_ERRORS as e:
            logger.error("user_registration_failed", kind=identity.kind, error=str(e))
            raise AuthError(
                "Failed to register user",
                ErrorCode.REGISTRATION_FAILED,
                500,
            ) from e

        return user

    async def get_by_username(self, username: str) -> Optional[User]:
        """Exact-match lookup by username, including the password hash."""
        return await self._fetch_one("username = $1", username)

    async def get_by_mobile(self, mobile_number: str) -> Optional[User]:
        """Exact-match lookup by E.164 mobile number."""
        return await self._fetch_one("mobile_number = $1", mobile_number)

    async def get_by_id(self, user_id: UUID) -> Optional[User]:
        return await self._fetch_one("id = $1", user_id)

    async def _fetch_one(self, where: str, value) -> Optional[User]:
        pool = await get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {USER_COLUMNS} FROM users WHERE {where}",
                    value,
                )
        except STORAGE_ERRORS as e:
            logger.error("user_lookup_failed", error=str(e))
            raise internal_failure() from e

        if row is None:
            return None
        return User.from_row(row)
