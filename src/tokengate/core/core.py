from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient

from tokengate.config import Config

if TYPE_CHECKING:
    from tokengate.core.modules.credential.service import CredentialVerifier
    from tokengate.core.modules.session.service import SessionManager
    from tokengate.core.modules.session.store import TokenStore
    from tokengate.core.modules.user.directory import UserDirectory

logger = structlog.get_logger(__name__)


class Service:
    """Base class for components with startup/shutdown hooks."""

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""


class Services:
    """Service registry, built from config and started in dependency order."""

    user: UserDirectory
    token_store: TokenStore
    credential: CredentialVerifier
    session: SessionManager

    def __init__(self, config: Config, mongo_client: AsyncMongoClient[dict[str, Any]] | None = None) -> None:
        from tokengate.core.modules.credential.hasher import BcryptHasher  # noqa: PLC0415
        from tokengate.core.modules.credential.service import CredentialVerifier  # noqa: PLC0415
        from tokengate.core.modules.session.service import SessionManager  # noqa: PLC0415
        from tokengate.core.modules.session.store import MemoryTokenStore, MongoTokenStore  # noqa: PLC0415
        from tokengate.core.modules.user.directory import (  # noqa: PLC0415
            MemoryUserDirectory,
            MongoUserDirectory,
        )

        if mongo_client is not None and config.database_url:
            database = mongo_client.get_database(urlparse(config.database_url).path[1:])
            self.user = MongoUserDirectory(database)
            self.token_store = MongoTokenStore(database)
        else:
            if config.users_file:
                self.user = MemoryUserDirectory.from_file(config.users_file)
            else:
                self.user = MemoryUserDirectory.with_demo_user()
            self.token_store = MemoryTokenStore()

        self.credential = CredentialVerifier(self.user, BcryptHasher(rounds=config.bcrypt_rounds))
        self.session = SessionManager(
            store=self.token_store,
            users=self.user,
            verifier=self.credential,
            ttl=timedelta(days=config.session_ttl_days),
            sweep_interval=config.sweep_interval_seconds,
        )

        # Order matters: storage first, session manager (and its sweeper) last
        self._services: list[Service] = [self.user, self.token_store, self.session]

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, optional MongoDB client, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    services: Services

    def __init__(self, config: Config) -> None:
        self.config = config
        self.mongo_client = None
        if config.database_url:
            self.mongo_client = AsyncMongoClient(config.database_url, tz_aware=True)
        self.services = Services(config, self.mongo_client)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.services.start_all()
        logger.info("core_started", backend="mongo" if self.mongo_client else "memory")

    async def on_stop(self) -> None:
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
