from functools import cached_property

import structlog

from tokengate.core.modules.credential.hasher import PasswordHasher
from tokengate.core.modules.user.directory import UserDirectory
from tokengate.core.modules.user.models import User
from tokengate.errors import InvalidCredentialsError, NotFoundError

logger = structlog.get_logger(__name__)

# Same text for unknown users and wrong passwords
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"


class CredentialVerifier:
    """Checks an identifier and password against stored credentials."""

    def __init__(self, users: UserDirectory, hasher: PasswordHasher) -> None:
        self._users = users
        self._hasher = hasher

    @cached_property
    def _dummy_digest(self) -> str:
        return self._hasher.hash("not-a-real-password")

    async def find_user(self, identifier: str) -> User | None:
        """Resolve identifier as id, then username, then email. First match wins."""
        user = await self._users.find_by_id(identifier)
        if user is None:
            user = await self._users.find_by_username(identifier)
        if user is None:
            user = await self._users.find_by_email(identifier)
        return user

    async def verify(self, identifier: str, password: str) -> User:
        """Return the full user record if the password matches.

        Raises:
            NotFoundError: If no user matches the identifier
            InvalidCredentialsError: If the password does not match
        """
        user = await self.find_user(identifier)
        if user is None:
            # Spend one verification anyway so both failures take similar time
            self._hasher.verify(password, self._dummy_digest)
            logger.debug("credential_user_not_found", identifier=identifier)
            raise NotFoundError(INVALID_CREDENTIALS_MESSAGE)

        if not self._hasher.verify(password, user.password_hash):
            raise InvalidCredentialsError(INVALID_CREDENTIALS_MESSAGE)
        return user
