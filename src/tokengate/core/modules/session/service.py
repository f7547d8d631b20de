import asyncio
import contextlib
from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from tokengate.core.core import Service
from tokengate.core.modules.credential.service import CredentialVerifier
from tokengate.core.modules.session.models import AuthToken, Session
from tokengate.core.modules.session.store import TokenStore
from tokengate.core.modules.user.directory import UserDirectory
from tokengate.core.modules.user.models import User
from tokengate.errors import (
    InvalidCredentialsError,
    NotFoundError,
    TokenCollisionError,
    TokenExpiredError,
    TokenNotFoundError,
    UserNotFoundError,
)
from tokengate.utils import now, token_fingerprint

logger = structlog.get_logger(__name__)

DEFAULT_SESSION_TTL = timedelta(days=30)


class SessionManager(Service):
    """Issues, validates, rotates and revokes session tokens.

    The manager is the only writer of its token store. A session moves from
    active to expired or revoked and never comes back: once a token fails it
    keeps failing.
    """

    def __init__(
        self,
        store: TokenStore,
        users: UserDirectory,
        verifier: CredentialVerifier,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Callable[[], datetime] = now,
        sweep_interval: float | None = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self._store = store
        self._users = users
        self._verifier = verifier
        self._ttl = ttl
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._sweeper: asyncio.Task[None] | None = None

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def on_start(self) -> None:
        """Start the periodic expiry sweep if an interval is configured."""
        if self._sweep_interval:
            self._sweeper = asyncio.create_task(self.run_sweeper(self._sweep_interval))

    async def on_stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sweeper
            self._sweeper = None

    async def login(self, identifier: str, password: str) -> tuple[Session, User]:
        """Verify credentials and open a new session.

        Unknown identifiers and wrong passwords raise the same
        InvalidCredentialsError so callers cannot tell them apart.
        """
        try:
            user = await self._verifier.verify(identifier, password)
        except (NotFoundError, InvalidCredentialsError) as e:
            logger.info("login_failed", reason=type(e).__name__)
            raise InvalidCredentialsError from None

        session = Session.issue(user.id, self._clock(), self._ttl)
        await self._put(session)
        logger.info("session_created", user_id=user.id, token=token_fingerprint(session.token))
        return session, user

    async def validate(self, token: AuthToken) -> User:
        """Resolve a live token to its user.

        Raises:
            TokenNotFoundError: Token is unknown, revoked or rotated
            TokenExpiredError: Token is past expiry (the session is evicted)
            UserNotFoundError: Session is live but its user is gone
        """
        session = await self._get_live_session(token)
        return await self._resolve_user(session)

    async def refresh(self, token: AuthToken) -> tuple[Session, User]:
        """Rotate a live token: the old one stops working, a new one is returned.

        Concurrent refreshes of the same token have exactly one winner; the
        others fail with TokenNotFoundError.
        """
        session = await self._get_live_session(token)
        user = await self._resolve_user(session)

        new_session = Session.issue(session.user_id, self._clock(), self._ttl)
        try:
            replaced = await self._store.replace(token, new_session)
        except TokenCollisionError:
            logger.error("token_collision", user_id=session.user_id)
            raise
        if not replaced:
            raise TokenNotFoundError

        logger.info(
            "session_refreshed",
            user_id=user.id,
            old_token=token_fingerprint(token),
            token=token_fingerprint(new_session.token),
        )
        return new_session, user

    async def revoke(self, token: AuthToken) -> None:
        if await self._store.delete(token):
            logger.info("session_revoked", token=token_fingerprint(token))

    async def revoke_all(self, user_id: str) -> int:
        count = await self._store.delete_all_for_user(user_id)
        logger.info("sessions_revoked_for_user", user_id=user_id, count=count)
        return count

    async def sweep_expired(self) -> int:
        count = await self._store.sweep_expired(self._clock())
        if count:
            logger.info("sessions_swept", count=count)
        return count

    async def run_sweeper(self, interval: float) -> None:
        """Sweep expired sessions every `interval` seconds until cancelled."""
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_expired()
            except Exception:
                # Keep sweeping; a failed pass is retried on the next tick
                logger.exception("session_sweep_failed")

    async def _put(self, session: Session) -> None:
        try:
            await self._store.put(session)
        except TokenCollisionError:
            logger.error("token_collision", user_id=session.user_id)
            raise

    async def _get_live_session(self, token: AuthToken) -> Session:
        session = await self._store.get(token)
        if session is None:
            raise TokenNotFoundError
        if session.is_expired(self._clock()):
            await self._store.delete(token)
            logger.info("session_expired", user_id=session.user_id, token=token_fingerprint(token))
            raise TokenExpiredError
        return session

    async def _resolve_user(self, session: Session) -> User:
        user = await self._users.find_by_id(session.user_id)
        if user is None:
            logger.warning("session_user_missing", user_id=session.user_id, token=token_fingerprint(session.token))
            raise UserNotFoundError
        return user
