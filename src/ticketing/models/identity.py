"""Caller identity supplied by the external identity provider."""

from enum import Enum

from pydantic import ConfigDict, Field

from ticketing.models.event import CamelModel


class UserRole(str, Enum):
    """Roles a caller can hold."""

    ADMIN = 'admin'
    ORGANIZER = 'organizer'
    ATTENDEE = 'attendee'


class CallerIdentity(CamelModel):
    """Validated caller identity, trusted as-is by the stores' callers."""

    model_config = ConfigDict(frozen=True)

    subject_id: str = Field(min_length=1)
    email: str
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def owns(self, user_id: str) -> bool:
        """Check whether the caller is the owner recorded on a record."""
        return self.subject_id == user_id
