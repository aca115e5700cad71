"""One-time passcode models."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class OneTimePasscode(BaseModel):
    """A short-lived numeric code owned by a user."""

    id: UUID
    user_id: UUID
    code: str = Field(repr=False, pattern=r"^\d{6}$")
    expires_at: datetime
    is_used: bool = False
    created_at: datetime


class OTPValidation(BaseModel):
    """Outcome of checking a submitted code.

    Attributes:
        valid: Whether the code may be consumed
        otp_id: Id of the matching row when valid
        reason: Human-readable failure reason when not valid
    """

    valid: bool
    otp_id: Optional[UUID] = None
    reason: Optional[str] = None

    @property
    def is_expired(self) -> bool:
        return not self.valid and self.reason is not None and "expired" in self.reason.lower()
