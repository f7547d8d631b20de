from abc import ABC, abstractmethod
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import structlog
from pydantic import TypeAdapter
from pymongo.asynchronous.database import AsyncDatabase

from tokengate.core.core import Service
from tokengate.core.modules.user.models import User
from tokengate.errors import ValidationError

logger = structlog.get_logger(__name__)

# Seed record of the original cookie-auth demo; the digest is bcrypt of the demo password.
DEMO_USER = User(
    id="szbxTRMAbSaCMxdmk7AMbIfSCO",
    username="joeblow",
    email="joeblow@example.com",
    password_hash="$2a$12$PUnDAFhNom/em/8nYc4kdOvEgUpYSA2aTcJ0B83qR0LQvG55.Z/de",
    display_name="Joe Blow",
)

_users_adapter = TypeAdapter(list[User])


class UserDirectory(Service, ABC):
    """Read-only lookup of user records."""

    @abstractmethod
    async def find_by_id(self, user_id: str) -> User | None: ...

    @abstractmethod
    async def find_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    async def find_by_email(self, email: str) -> User | None: ...


class MemoryUserDirectory(UserDirectory):
    """Directory over a fixed set of users held in memory."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._by_id: dict[str, User] = {}
        self._by_username: dict[str, User] = {}
        self._by_email: dict[str, User] = {}
        for user in users:
            if user.id in self._by_id:
                raise ValidationError(f"Duplicate user id '{user.id}'")
            if user.username in self._by_username:
                raise ValidationError(f"Duplicate username '{user.username}'")
            if user.email in self._by_email:
                raise ValidationError(f"Duplicate email '{user.email}'")
            self._by_id[user.id] = user
            self._by_username[user.username] = user
            self._by_email[user.email] = user

    @classmethod
    def from_file(cls, path: str | Path) -> "MemoryUserDirectory":
        """Load users from a JSON array of user records."""
        users = _users_adapter.validate_json(Path(path).read_bytes())
        logger.debug("users_loaded", path=str(path), user_count=len(users))
        return cls(users)

    @classmethod
    def with_demo_user(cls) -> "MemoryUserDirectory":
        return cls([DEMO_USER])

    async def find_by_id(self, user_id: str) -> User | None:
        return self._by_id.get(user_id)

    async def find_by_username(self, username: str) -> User | None:
        return self._by_username.get(username)

    async def find_by_email(self, email: str) -> User | None:
        return self._by_email.get(email)

    def __len__(self) -> int:
        return len(self._by_id)


class MongoUserDirectory(UserDirectory):
    """Directory backed by the `users` collection."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("users")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("username", 1)], unique=True)
        await self._collection.create_index([("email", 1)], unique=True)
        logger.debug("user_directory_started", user_count=await self._collection.count_documents({}))

    async def find_by_id(self, user_id: str) -> User | None:
        return await self._find_one({"_id": user_id})

    async def find_by_username(self, username: str) -> User | None:
        return await self._find_one({"username": username})

    async def find_by_email(self, email: str) -> User | None:
        return await self._find_one({"email": email})

    async def _find_one(self, query: dict[str, Any]) -> User | None:
        doc = await self._collection.find_one(query)
        if doc is None:
            return None
        return User.model_validate(doc)
