from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime

from pydantic import BaseModel, Field

from tokengate.config import Config
from tokengate.core.core import Core
from tokengate.core.modules.session.models import AuthToken
from tokengate.core.modules.user.models import UserView


class LoginResult(BaseModel):
    """Token issued by a successful login."""

    token: str = Field(..., description="Authentication token for subsequent requests")
    expires_at: datetime = Field(..., description="Token expiry time")
    user: UserView = Field(..., description="Authenticated user")


class RefreshResult(BaseModel):
    """Replacement token issued by a refresh."""

    token: str = Field(..., description="New authentication token; the previous one is no longer valid")
    expires_at: datetime = Field(..., description="Token expiry time")


class App:
    """Facade for all authentication operations; only sanitized users leave it."""

    def __init__(self, config: Config) -> None:
        self._core = Core(config)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    async def login(self, identifier: str, password: str) -> LoginResult:
        """Authenticate by id, username or email and create a session."""
        session, user = await self._core.services.session.login(identifier, password)
        return LoginResult(token=session.token, expires_at=session.expires_at, user=UserView.from_domain(user))

    async def validate(self, auth_token: AuthToken) -> UserView:
        """Resolve a token to the current user profile."""
        user = await self._core.services.session.validate(auth_token)
        return UserView.from_domain(user)

    async def refresh(self, auth_token: AuthToken) -> RefreshResult:
        """Rotate a token. The old token stops working."""
        session, _ = await self._core.services.session.refresh(auth_token)
        return RefreshResult(token=session.token, expires_at=session.expires_at)

    async def logout(self, auth_token: AuthToken) -> None:
        """Invalidate a session. Unknown tokens are ignored."""
        await self._core.services.session.revoke(auth_token)

    async def logout_all(self, user_id: str) -> int:
        """Invalidate every session of a user and return how many were revoked."""
        return await self._core.services.session.revoke_all(user_id)
