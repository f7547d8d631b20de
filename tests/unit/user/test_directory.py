"""Tests for the in-memory user directory."""

import json

import pytest

from tokengate.core.modules.credential.hasher import BcryptHasher
from tokengate.core.modules.credential.service import CredentialVerifier
from tokengate.core.modules.user.directory import DEMO_USER, MemoryUserDirectory
from tokengate.core.modules.user.models import User, UserView
from tokengate.errors import ValidationError


class TestLookups:
    """Tests for id, username and email lookups."""

    async def test_find_by_id(self, users, demo_user):
        assert await users.find_by_id(demo_user.id) == demo_user

    async def test_find_by_username(self, users, demo_user):
        assert await users.find_by_username("joeblow") == demo_user

    async def test_find_by_email(self, users, other_user):
        assert await users.find_by_email("jane@example.com") == other_user

    async def test_lookups_are_case_sensitive(self, users):
        assert await users.find_by_username("JoeBlow") is None
        assert await users.find_by_email("JOEBLOW@example.com") is None

    async def test_missing_user_returns_none(self, users):
        assert await users.find_by_id("nobody") is None
        assert await users.find_by_username("nobody") is None
        assert await users.find_by_email("nobody@example.com") is None


class TestSeeding:
    """Tests for building a directory from seed data."""

    def test_duplicate_username_rejected(self, demo_user):
        clone = User(id="other-id", username=demo_user.username, email="x@example.com", password_hash="h")
        with pytest.raises(ValidationError, match="Duplicate username"):
            MemoryUserDirectory([demo_user, clone])

    def test_duplicate_email_rejected(self, demo_user):
        clone = User(id="other-id", username="other", email=demo_user.email, password_hash="h")
        with pytest.raises(ValidationError, match="Duplicate email"):
            MemoryUserDirectory([demo_user, clone])

    def test_duplicate_id_rejected(self, demo_user):
        clone = User(id=demo_user.id, username="other", email="x@example.com", password_hash="h")
        with pytest.raises(ValidationError, match="Duplicate user id"):
            MemoryUserDirectory([demo_user, clone])

    async def test_from_file(self, tmp_path, demo_user):
        path = tmp_path / "users.json"
        path.write_text(json.dumps([demo_user.model_dump()]))

        directory = MemoryUserDirectory.from_file(path)

        assert len(directory) == 1
        assert await directory.find_by_username("joeblow") == demo_user

    async def test_demo_user(self):
        directory = MemoryUserDirectory.with_demo_user()
        assert await directory.find_by_email("joeblow@example.com") == DEMO_USER

    async def test_demo_user_password_verifies(self):
        """The shipped demo digest matches the documented demo password."""
        hasher = BcryptHasher()
        assert hasher.verify("TestPassword4$", DEMO_USER.password_hash)
        assert not hasher.verify("wrong", DEMO_USER.password_hash)

        verifier = CredentialVerifier(MemoryUserDirectory.with_demo_user(), hasher)
        assert await verifier.verify("joeblow", "TestPassword4$") == DEMO_USER


class TestUserView:
    """Tests for the sanitized user representation."""

    def test_view_has_no_password_hash(self, demo_user):
        view = UserView.from_domain(demo_user)
        data = view.model_dump()

        assert "password_hash" not in data
        assert data == {
            "id": demo_user.id,
            "username": "joeblow",
            "email": "joeblow@example.com",
            "display_name": "Joe Blow",
        }
