import asyncio
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from tokengate.core.core import Service
from tokengate.core.modules.session.models import AuthToken, Session
from tokengate.errors import TokenCollisionError
from tokengate.utils import token_fingerprint

logger = structlog.get_logger(__name__)


class TokenStore(Service, ABC):
    """Mapping of token -> session with a user_id -> tokens index.

    Every operation is atomic with respect to every other one.
    """

    @abstractmethod
    async def put(self, session: Session) -> None:
        """Insert a session. Raises TokenCollisionError if the token already exists."""

    @abstractmethod
    async def get(self, token: AuthToken) -> Session | None: ...

    @abstractmethod
    async def delete(self, token: AuthToken) -> bool:
        """Remove a session. Returns False if it was already absent."""

    @abstractmethod
    async def replace(self, old_token: AuthToken, session: Session) -> bool:
        """Swap old_token for session in one step.

        Returns False, leaving the store unchanged, if old_token is no longer
        present. Raises TokenCollisionError if the new token already exists.
        """

    @abstractmethod
    async def delete_all_for_user(self, user_id: str) -> int: ...

    @abstractmethod
    async def sweep_expired(self, now: datetime) -> int:
        """Remove every session with expires_at <= now."""

    @abstractmethod
    async def tokens_for_user(self, user_id: str) -> set[AuthToken]: ...

    @abstractmethod
    async def count(self) -> int: ...


class MemoryTokenStore(TokenStore):
    """In-process store guarded by a single lock.

    The lock is never held across an await, so it serializes both threads
    and coroutines sharing one event loop.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[AuthToken, Session] = {}
        self._user_tokens: dict[str, set[AuthToken]] = {}

    async def put(self, session: Session) -> None:
        with self._lock:
            self._insert(session)

    async def get(self, token: AuthToken) -> Session | None:
        with self._lock:
            return self._sessions.get(token)

    async def delete(self, token: AuthToken) -> bool:
        with self._lock:
            return self._remove(token) is not None

    async def replace(self, old_token: AuthToken, session: Session) -> bool:
        with self._lock:
            if old_token not in self._sessions:
                return False
            if session.token in self._sessions:
                raise TokenCollisionError(f"Token collision on {token_fingerprint(session.token)}")
            self._remove(old_token)
            self._insert(session)
            return True

    async def delete_all_for_user(self, user_id: str) -> int:
        with self._lock:
            tokens = self._user_tokens.pop(user_id, set())
            for token in tokens:
                del self._sessions[token]
            return len(tokens)

    async def sweep_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [token for token, session in self._sessions.items() if session.expires_at <= now]
            for token in expired:
                self._remove(token)
            return len(expired)

    async def tokens_for_user(self, user_id: str) -> set[AuthToken]:
        with self._lock:
            return set(self._user_tokens.get(user_id, ()))

    async def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _insert(self, session: Session) -> None:
        # Caller holds the lock
        if session.token in self._sessions:
            raise TokenCollisionError(f"Token collision on {token_fingerprint(session.token)}")
        self._sessions[session.token] = session
        self._user_tokens.setdefault(session.user_id, set()).add(session.token)

    def _remove(self, token: AuthToken) -> Session | None:
        # Caller holds the lock
        session = self._sessions.pop(token, None)
        if session is None:
            return None
        tokens = self._user_tokens[session.user_id]
        tokens.discard(token)
        if not tokens:
            del self._user_tokens[session.user_id]
        return session


class MongoTokenStore(TokenStore):
    """Store backed by the `sessions` collection, keyed by token.

    The token is the document _id, so one document holds both the primary
    entry and its user_id index entry and the two can never disagree.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("sessions")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        # Index for user_id (revoke-all lookups)
        await self._collection.create_index([("user_id", 1)])
        # Index for expires_at (sweeps)
        await self._collection.create_index([("expires_at", 1)])

    async def put(self, session: Session) -> None:
        try:
            await self._collection.insert_one(self._to_mongo(session))
        except DuplicateKeyError as e:
            raise TokenCollisionError(f"Token collision on {token_fingerprint(session.token)}") from e

    async def get(self, token: AuthToken) -> Session | None:
        doc = await self._collection.find_one({"_id": token})
        if doc is None:
            return None
        return self._from_mongo(doc)

    async def delete(self, token: AuthToken) -> bool:
        res = await self._collection.delete_one({"_id": token})
        return res.deleted_count > 0

    async def replace(self, old_token: AuthToken, session: Session) -> bool:
        # Insert first so there is never a moment where neither token is valid;
        # only the caller that actually deletes old_token keeps its new session.
        try:
            await self.put(session)
            removed = await self._collection.find_one_and_delete({"_id": old_token})
        except TokenCollisionError:
            raise
        except BaseException:
            # Cancelled or failed mid-swap: the new token was never handed out
            await asyncio.shield(self._discard(session.token))
            raise
        if removed is None:
            await asyncio.shield(self._discard(session.token))
            return False
        return True

    async def _discard(self, token: AuthToken) -> None:
        await self._collection.delete_one({"_id": token})

    async def delete_all_for_user(self, user_id: str) -> int:
        res = await self._collection.delete_many({"user_id": user_id})
        return res.deleted_count

    async def sweep_expired(self, now: datetime) -> int:
        res = await self._collection.delete_many({"expires_at": {"$lte": now}})
        return res.deleted_count

    async def tokens_for_user(self, user_id: str) -> set[AuthToken]:
        cursor = self._collection.find({"user_id": user_id}, {"_id": 1})
        return {AuthToken(doc["_id"]) async for doc in cursor}

    async def count(self) -> int:
        return await self._collection.count_documents({})

    @staticmethod
    def _to_mongo(session: Session) -> dict[str, Any]:
        data = session.model_dump()
        data["_id"] = data.pop("token")
        return data

    @staticmethod
    def _from_mongo(doc: dict[str, Any]) -> Session:
        return Session(
            token=AuthToken(doc["_id"]),
            user_id=doc["user_id"],
            issued_at=doc["issued_at"],
            expires_at=doc["expires_at"],
        )
