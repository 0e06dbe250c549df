# tests/conftest.py
"""
Shared fixtures for auth core and API tests.

All components share a FakeClock so session timestamps are deterministic.
Token ``exp`` claims are still checked by PyJWT against real time, so the
clock starts at the real current time and only moves forward a little,
unless a test deliberately moves it past the session TTL.
"""

import pytest
from datetime import datetime, timedelta, timezone

from zahnflow.core.config import Settings
from zahnflow.core.security import build_auth_services, hash_password
from zahnflow.models.user import User
from zahnflow.services.credential_store import InMemoryCredentialStore
from zahnflow.services.session_store import InMemorySessionStore

TEST_SECRET = "test-secret-for-zahnflow-auth"

USER_1 = {"id": "u1", "email": "a@b.com", "name": "Dr. Anna Becker", "password": "richtig123"}
USER_2 = {"id": "u2", "email": "praxis@zahnflow.de", "name": "Dr. Paul Roth", "password": "geheim456"}


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    return Settings(
        JWT_SECRET=TEST_SECRET,
        BCRYPT_ROUNDS=4,
        SEED_DEMO_USER=False,
        _env_file=None,
    )


async def make_user(data: dict) -> User:
    return User(
        id=data["id"],
        email=data["email"],
        name=data["name"],
        password_hash=await hash_password(data["password"], rounds=4),
    )


@pytest.fixture
async def credential_store():
    store = InMemoryCredentialStore()
    await store.add(await make_user(USER_1))
    await store.add(await make_user(USER_2))
    return store


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def auth(test_settings, credential_store, session_store, clock):
    """AuthServices bundle over in-memory stores"""
    return build_auth_services(test_settings, credential_store, session_store, clock=clock)
