# zahnflow/services/credential_store.py
"""
Credential Store - persists user identity and bcrypt hash.

Lookups by email expect the already normalized (lower-case) address.
Users are created out-of-band (seed); nothing here mutates them afterwards.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

from zahnflow.core.logging_config import short
from zahnflow.models.user import User, normalize_email
from zahnflow.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class CredentialStore(ABC):
    """Read interface used by the Authenticator, plus ``add`` for seeding."""

    @abstractmethod
    async def find_by_email(self, normalized_email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def add(self, user: User) -> User:
        """
        Store a new user.

        Raises:
            ValueError: If the email is already registered
        """
        pass


class InMemoryCredentialStore(CredentialStore):
    """Process-local store for development and tests."""

    def __init__(self):
        self._users: Dict[str, User] = {}
        self._ids_by_email: Dict[str, str] = {}

    async def find_by_email(self, normalized_email: str) -> Optional[User]:
        user_id = self._ids_by_email.get(normalized_email)
        return self._users.get(user_id) if user_id else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        return self._users.get(user_id)

    async def add(self, user: User) -> User:
        user = user.model_copy(update={"email": normalize_email(user.email)})
        if user.email in self._ids_by_email:
            raise ValueError("Email is already registered")
        self._users[user.id] = user
        self._ids_by_email[user.email] = user.id
        return user


class RedisCredentialStore(CredentialStore):
    """
    Redis layout:
        <prefix>:user:<id>            -> user JSON
        <prefix>:user_email:<email>   -> user id
    """

    def __init__(self, redis_service: RedisService):
        self._redis = redis_service

    def _user_key(self, user_id: str) -> str:
        return self._redis.key("user", user_id)

    def _email_key(self, email: str) -> str:
        return self._redis.key("user_email", email)

    async def find_by_email(self, normalized_email: str) -> Optional[User]:
        user_id = await self._redis.client.get(self._email_key(normalized_email))
        if user_id is None:
            return None
        return await self.find_by_id(user_id)

    async def find_by_id(self, user_id: str) -> Optional[User]:
        raw = await self._redis.client.get(self._user_key(user_id))
        if raw is None:
            return None
        return User.model_validate_json(raw)

    async def add(self, user: User) -> User:
        user = user.model_copy(update={"email": normalize_email(user.email)})
        client = self._redis.client

        # The email index doubles as the uniqueness constraint
        claimed = await client.set(self._email_key(user.email), user.id, nx=True)
        if not claimed:
            raise ValueError("Email is already registered")

        await client.set(self._user_key(user.id), user.model_dump_json())
        logger.info(f"👤 Stored user {short(user.id)}")
        return user
