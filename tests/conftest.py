"""Shared pytest fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

from tokengate.core.modules.credential.hasher import BcryptHasher
from tokengate.core.modules.credential.service import CredentialVerifier
from tokengate.core.modules.session.service import SessionManager
from tokengate.core.modules.session.store import MemoryTokenStore
from tokengate.core.modules.user.directory import MemoryUserDirectory
from tokengate.core.modules.user.models import User

DEMO_PASSWORD = "TestPassword4$"


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current += delta


class ForgetfulUserDirectory(MemoryUserDirectory):
    """Directory that can drop users, to simulate deletion after login."""

    def forget(self, user_id: str) -> None:
        user = self._by_id.pop(user_id)
        del self._by_username[user.username]
        del self._by_email[user.email]


@pytest.fixture(scope="session")
def hasher():
    """bcrypt with the minimum cost factor to keep tests fast."""
    return BcryptHasher(rounds=4)


@pytest.fixture
def demo_user(hasher):
    """Create the seeded demo user with a known password."""
    return User(
        id="szbxTRMAbSaCMxdmk7AMbIfSCO",
        username="joeblow",
        email="joeblow@example.com",
        password_hash=hasher.hash(DEMO_PASSWORD),
        display_name="Joe Blow",
    )


@pytest.fixture
def other_user(hasher):
    """Create a second user."""
    return User(
        id="u-jane",
        username="janedoe",
        email="jane@example.com",
        password_hash=hasher.hash("JanesPassword1!"),
        display_name="Jane Doe",
    )


@pytest.fixture
def users(demo_user, other_user):
    return ForgetfulUserDirectory([demo_user, other_user])


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def verifier(users, hasher):
    return CredentialVerifier(users, hasher)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def manager(store, users, verifier, clock):
    return SessionManager(store=store, users=users, verifier=verifier, ttl=timedelta(days=30), clock=clock)


@pytest.fixture
def demo_password():
    return DEMO_PASSWORD
