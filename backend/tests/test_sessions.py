# Tests for core/sessions.py and the user upsert in api/auth.py.

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from qots.api.auth import sync_user_from_identity
from qots.core.config import settings
from qots.core.sessions import create_session, delete_session, get_session, purge_expired_sessions
from qots.models.user import User
from qots.schemas.user import ProviderIdentity

T = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
WEEK = timedelta(seconds=604800)
PAYLOAD = {
    "userId": "42",
    "email": "octocat@example.com",
    "name": "The Octocat",
    "avatar": None,
    "provider": "github",
}


class TestSessionStore:
    async def test_create_and_get(self, db):
        token = await create_session(db, PAYLOAD, now=T)
        assert await get_session(db, token, now=T) == PAYLOAD

    async def test_tokens_are_distinct(self, db):
        first = await create_session(db, PAYLOAD, now=T)
        second = await create_session(db, PAYLOAD, now=T)
        assert first != second

    async def test_explicit_token(self, db):
        token = await create_session(db, PAYLOAD, token="chosen-token", now=T)
        assert token == "chosen-token"
        assert await get_session(db, "chosen-token", now=T) == PAYLOAD

    async def test_expiry_boundary(self, db):
        assert settings.SESSION_TTL_SECONDS == 604800
        token = await create_session(db, PAYLOAD, now=T)

        assert await get_session(db, token, now=T + WEEK - timedelta(seconds=1)) == PAYLOAD
        assert await get_session(db, token, now=T + WEEK + timedelta(seconds=1)) is None

    async def test_expired_session_is_dropped(self, db):
        token = await create_session(db, PAYLOAD, now=T)
        assert await get_session(db, token, now=T + WEEK + timedelta(seconds=1)) is None
        # Gone for good, even when asked about an earlier instant
        assert await get_session(db, token, now=T) is None

    async def test_unknown_token(self, db):
        assert await get_session(db, "nope", now=T) is None
        assert await get_session(db, "", now=T) is None

    async def test_delete(self, db):
        token = await create_session(db, PAYLOAD, now=T)
        assert await delete_session(db, token) is True
        assert await get_session(db, token, now=T) is None
        assert await delete_session(db, token) is False

    async def test_purge_expired(self, db):
        old = await create_session(db, PAYLOAD, now=T - WEEK - timedelta(hours=1))
        fresh = await create_session(db, PAYLOAD, now=T)

        assert await purge_expired_sessions(db, now=T) == 1
        assert await get_session(db, fresh, now=T) == PAYLOAD
        assert await get_session(db, old, now=T - WEEK) is None


class TestUserUpsert:
    def identity(self, **overrides):
        fields = {
            "provider": "github",
            "provider_user_id": "42",
            "display_name": "The Octocat",
            "email": "octocat@example.com",
            "avatar_url": "https://avatars.githubusercontent.com/u/42",
            "username": "octocat",
        }
        fields.update(overrides)
        return ProviderIdentity(**fields)

    async def test_first_login_inserts(self, db, session_factory):
        await sync_user_from_identity(self.identity(), db, now=T)

        async with session_factory() as fresh:
            user = await fresh.get(User, "42")
        assert user.email == "octocat@example.com"
        assert user.name == "The Octocat"
        assert user.provider == "github"
        assert user.last_login.replace(tzinfo=None) == T.replace(tzinfo=None)

    async def test_second_login_updates_in_place(self, db, session_factory):
        later = T + timedelta(days=3)
        await sync_user_from_identity(self.identity(), db, now=T)
        await sync_user_from_identity(
            self.identity(display_name="Mona", email="mona@example.com", avatar_url=None),
            db,
            now=later,
        )

        async with session_factory() as fresh:
            count = (await fresh.execute(select(func.count()).select_from(User))).scalar_one()
            user = await fresh.get(User, "42")
        assert count == 1
        assert user.name == "Mona"
        assert user.email == "mona@example.com"
        assert user.avatar is None
        assert user.last_login.replace(tzinfo=None) == later.replace(tzinfo=None)

    async def test_provider_is_not_rewritten(self, db, session_factory):
        await sync_user_from_identity(self.identity(), db, now=T)
        await sync_user_from_identity(self.identity(provider="google"), db, now=T)

        async with session_factory() as fresh:
            user = await fresh.get(User, "42")
        assert user.provider == "github"

    async def test_unsupported_dialect(self):
        db = SimpleNamespace(get_bind=lambda: SimpleNamespace(dialect=SimpleNamespace(name="mysql")))
        with pytest.raises(ValueError, match="mysql"):
            await sync_user_from_identity(self.identity(), db, now=T)
