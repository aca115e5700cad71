"""Bearer session models."""

from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from authcore.models.user import UserProfile


class Session(BaseModel):
    """An authenticated session joined with its owner's public profile."""

    id: UUID
    user_id: UUID
    token: str = Field(repr=False)
    expires_at: datetime
    created_at: datetime
    user: UserProfile

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """A session is only valid while ``expires_at`` is strictly in the future."""
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Session":
        """Build a Session from a sessions-join-users record.

        User columns are expected with a ``user_`` prefix.
        """
        return cls(
            id=row["id"],
            user_id=row["user_id"],
            token=row["token"],
            expires_at=row["expires_at"],
            created_at=row["created_at"],
            user=UserProfile(
                id=row["user_id"],
                username=row["user_username"],
                mobile_number=row["user_mobile_number"],
                email=row["user_email"],
                name=row["user_name"],
                is_admin=row["user_is_admin"],
                created_at=row["user_created_at"],
                updated_at=row["user_updated_at"],
            ),
        )
