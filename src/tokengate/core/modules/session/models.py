"""Session management models."""

from datetime import datetime, timedelta
from typing import NewType, Self

from pydantic import BaseModel, ConfigDict, model_validator

from tokengate.utils import generate_token

AuthToken = NewType("AuthToken", str)


class Session(BaseModel):
    """Authentication session bound to one opaque bearer token.

    A session is immutable; rotation replaces it with a new one for the
    same user.
    """

    token: AuthToken
    user_id: str
    issued_at: datetime
    expires_at: datetime

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_expiry_after_issue(self) -> Self:
        if self.expires_at <= self.issued_at:
            raise ValueError("expires_at must be later than issued_at")
        return self

    @classmethod
    def issue(cls, user_id: str, issued_at: datetime, ttl: timedelta) -> "Session":
        """Mint a session with a fresh random token."""
        return cls(
            token=AuthToken(generate_token()),
            user_id=user_id,
            issued_at=issued_at,
            expires_at=issued_at + ttl,
        )

    def is_expired(self, at: datetime) -> bool:
        return at >= self.expires_at
