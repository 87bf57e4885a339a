"""Identity used to look up subscriptions: a registered user id or a bare email."""

from dataclasses import dataclass
from typing import Optional, Union

from jobportal.utils.errors import ValidationError


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True)
class ByUserId:
    user_id: str


@dataclass(frozen=True)
class ByEmail:
    email: str

    def __post_init__(self):
        object.__setattr__(self, "email", normalize_email(self.email))


Identity = Union[ByUserId, ByEmail]


def identity_from(user_id: Optional[str] = None, email: Optional[str] = None) -> Identity:
    """Build an identity from request parameters, preferring the user id."""
    if user_id:
        return ByUserId(user_id)
    if email and email.strip():
        return ByEmail(email)
    raise ValidationError("User ID or email is required")
