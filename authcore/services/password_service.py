"""Password hashing and verification with bcrypt."""

import asyncio

import bcrypt
import structlog

from authcore.errors import HashingError

logger = structlog.get_logger(__name__)

# Existing hashes carry their own cost, so raising this does not break them.
BCRYPT_COST_FACTOR = 10

# bcrypt only consumes the first 72 bytes of its input.
BCRYPT_MAX_PASSWORD_BYTES = 72


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_PASSWORD_BYTES]


class PasswordHasher:
    """Salted one-way hashing of credentials.

    Both operations are CPU-bound. From async code use
    ``hash_async`` / ``verify_async`` so the event loop is not blocked.
    """

    def __init__(self, rounds: int = BCRYPT_COST_FACTOR):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain-text password to hash

        Returns:
            Bcrypt hash string

        Raises:
            HashingError: If the bcrypt primitive fails
        """
        try:
            hashed = bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=self.rounds))
        except (ValueError, TypeError) as e:
            logger.error("password_hash_failed", error=str(e))
            raise HashingError("Failed to hash password") from e
        return hashed.decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against a bcrypt hash in constant time.

        Args:
            password: Plain-text password to check
            password_hash: Bcrypt hash to verify against

        Returns:
            True if the password matches, False otherwise

        Raises:
            HashingError: If the stored hash is malformed
        """
        try:
            return bcrypt.checkpw(_encode(password), password_hash.encode("utf-8"))
        except (ValueError, TypeError) as e:
            logger.error("password_verify_failed", error=str(e))
            raise HashingError("Failed to compare password") from e

    async def hash_async(self, password: str) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.hash, password)

    async def verify_async(self, password: str, password_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.verify, password, password_hash)
