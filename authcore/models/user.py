"""User identity models."""

from datetime import datetime
from typing import Annotated, Any, Literal, Mapping, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field


class CredentialsIdentity(BaseModel):
    """Username/password proof."""

    kind: Literal["credentials"] = "credentials"
    username: str
    password_hash: str = Field(repr=False)


class MobileIdentity(BaseModel):
    """Mobile-number OTP proof."""

    kind: Literal["mobile"] = "mobile"
    mobile_number: str


Identity = Annotated[
    Union[CredentialsIdentity, MobileIdentity],
    Field(discriminator="kind"),
]


class UserProfile(BaseModel):
    """Public view of a user, safe to return to callers."""

    id: UUID
    username: Optional[str] = None
    mobile_number: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    is_admin: bool = False
    created_at: datetime
    updated_at: datetime


class User(UserProfile):
    """A registered user as stored, including the password hash."""

    password_hash: Optional[str] = Field(default=None, repr=False)

    @classmethod
    def from_identity(
        cls,
        user_id: UUID,
        identity: Union[CredentialsIdentity, MobileIdentity],
        created_at: datetime,
        is_admin: bool = False,
    ) -> "User":
        """Project an identity onto a storage row."""
        if isinstance(identity, CredentialsIdentity):
            fields = {"username": identity.username, "password_hash": identity.password_hash}
        else:
            fields = {"mobile_number": identity.mobile_number}
        return cls(
            id=user_id,
            is_admin=is_admin,
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        """Build a User from an asyncpg record of the users table."""
        return cls(
            id=row["id"],
            username=row["username"],
            password_hash=row["password_hash"],
            mobile_number=row["mobile_number"],
            email=row["email"],
            name=row["name"],
            is_admin=row["is_admin"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def identity(self) -> Optional[Union[CredentialsIdentity, MobileIdentity]]:
        """The proof method this user registered with.

        Credentials win if a row somehow carries both; rows carrying neither
        have no usable identity.
        """
        if self.username is not None and self.password_hash is not None:
            return CredentialsIdentity(username=self.username, password_hash=self.password_hash)
        if self.mobile_number is not None:
            return MobileIdentity(mobile_number=self.mobile_number)
        return None

    def profile(self) -> UserProfile:
        """Return the public profile without the password hash."""
        return UserProfile(**self.model_dump(exclude={"password_hash"}))
