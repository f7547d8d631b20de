from pydantic import BaseModel, Field

from tokengate.core.db import MongoModel


class User(MongoModel):
    """User domain model with credentials."""

    username: str
    email: str
    password_hash: str  # bcrypt hash
    display_name: str = ""


class UserView(BaseModel):
    """User account information (API representation).

    Never carries the password hash or any session token.
    """

    id: str = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: str = Field(..., description="Email address")
    display_name: str = Field(..., description="Display name")

    @classmethod
    def from_domain(cls, user: User) -> "UserView":
        """Create view model from domain model."""
        return cls(id=user.id, username=user.username, email=user.email, display_name=user.display_name)
