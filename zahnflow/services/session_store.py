# zahnflow/services/session_store.py
"""
Session Store - persists active session records.

Every method is one logical store operation. Callers pass ``now`` so the
Authenticator, Token Validator and Session Manager share a single clock.
Delete operations return the number of sessions removed.

Two implementations:
- InMemorySessionStore: dict-backed, for development and tests
- RedisSessionStore: shared between workers, each write runs in a
  MULTI/EXEC pipeline
"""
from abc import ABC, abstractmethod
from datetime import datetime
from math import ceil
from typing import Dict, Iterable, List, Optional
import logging

from zahnflow.models.session import Session
from zahnflow.services.redis_service import RedisService

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Storage interface for session records."""

    @abstractmethod
    async def insert(self, session: Session) -> None:
        pass

    @abstractmethod
    async def delete_by_token_hash(self, token_hash: str) -> int:
        pass

    @abstractmethod
    async def delete_by_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def delete_by_id(self, session_id: str, user_id: str) -> int:
        """Delete only if the session belongs to ``user_id``."""
        pass

    @abstractmethod
    async def delete_expired(self, user_id: str, now: datetime) -> int:
        """Delete the user's sessions with ``expires_at < now``."""
        pass

    @abstractmethod
    async def count_live(self, user_id: str, now: datetime) -> int:
        pass

    @abstractmethod
    async def find_oldest_by_activity(self, user_id: str) -> Optional[Session]:
        """Session with the smallest ``last_activity_at`` for the user."""
        pass

    @abstractmethod
    async def find_by_token_hash(self, token_hash: str, now: datetime) -> Optional[Session]:
        """Live session (``expires_at > now``) with the given hash."""
        pass

    @abstractmethod
    async def touch_activity(self, token_hash: str, now: datetime) -> None:
        pass

    @abstractmethod
    async def list_live(self, user_id: str, now: datetime) -> List[Session]:
        """Live sessions ordered by ``last_activity_at`` descending."""
        pass


def _oldest(sessions: Iterable[Session]) -> Optional[Session]:
    return min(sessions, key=lambda s: s.last_activity_at, default=None)


def _newest_first(sessions: Iterable[Session]) -> List[Session]:
    return sorted(sessions, key=lambda s: s.last_activity_at, reverse=True)


class InMemorySessionStore(SessionStore):
    """Process-local session store."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}

    def _for_user(self, user_id: str) -> List[Session]:
        return [s for s in self._sessions.values() if s.user_id == user_id]

    def _delete_where(self, predicate) -> int:
        doomed = [sid for sid, s in self._sessions.items() if predicate(s)]
        for sid in doomed:
            del self._sessions[sid]
        return len(doomed)

    async def insert(self, session: Session) -> None:
        self._sessions[session.id] = session.model_copy()

    async def delete_by_token_hash(self, token_hash: str) -> int:
        return self._delete_where(lambda s: s.token_hash == token_hash)

    async def delete_by_user(self, user_id: str) -> int:
        return self._delete_where(lambda s: s.user_id == user_id)

    async def delete_by_id(self, session_id: str, user_id: str) -> int:
        return self._delete_where(lambda s: s.id == session_id and s.user_id == user_id)

    async def delete_expired(self, user_id: str, now: datetime) -> int:
        return self._delete_where(lambda s: s.user_id == user_id and s.is_expired(now))

    async def count_live(self, user_id: str, now: datetime) -> int:
        return sum(1 for s in self._for_user(user_id) if s.is_live(now))

    async def find_oldest_by_activity(self, user_id: str) -> Optional[Session]:
        oldest = _oldest(self._for_user(user_id))
        return oldest.model_copy() if oldest else None

    async def find_by_token_hash(self, token_hash: str, now: datetime) -> Optional[Session]:
        for session in self._sessions.values():
            if session.token_hash == token_hash and session.is_live(now):
                return session.model_copy()
        return None

    async def touch_activity(self, token_hash: str, now: datetime) -> None:
        for session in self._sessions.values():
            if session.token_hash == token_hash:
                session.last_activity_at = now

    async def list_live(self, user_id: str, now: datetime) -> List[Session]:
        live = [s.model_copy() for s in self._for_user(user_id) if s.is_live(now)]
        return _newest_first(live)


class RedisSessionStore(SessionStore):
    """
    Redis layout:
        <prefix>:session:<id>              -> session JSON (expires at expires_at)
        <prefix>:session_token:<hash>      -> session id (same expiry)
        <prefix>:user_sessions:<user_id>   -> ZSET of session ids scored by last activity

    Ids left in the ZSET after Redis expired their session key are pruned
    by ``delete_expired``.
    """

    def __init__(self, redis_service: RedisService):
        self._redis = redis_service

    @property
    def _client(self):
        return self._redis.client

    def _session_key(self, session_id: str) -> str:
        return self._redis.key("session", session_id)

    def _token_key(self, token_hash: str) -> str:
        return self._redis.key("session_token", token_hash)

    def _user_key(self, user_id: str) -> str:
        return self._redis.key("user_sessions", user_id)

    async def _get(self, session_id: str) -> Optional[Session]:
        raw = await self._client.get(self._session_key(session_id))
        return Session.model_validate_json(raw) if raw is not None else None

    async def _get_by_hash(self, token_hash: str) -> Optional[Session]:
        session_id = await self._client.get(self._token_key(token_hash))
        if session_id is None:
            return None
        return await self._get(session_id)

    async def _load_user(self, user_id: str):
        """Returns (sessions, dangling_ids) for the user's index."""
        ids = await self._client.zrange(self._user_key(user_id), 0, -1)
        if not ids:
            return [], []
        values = await self._client.mget([self._session_key(sid) for sid in ids])
        sessions, dangling = [], []
        for sid, raw in zip(ids, values):
            if raw is None:
                dangling.append(sid)
            else:
                sessions.append(Session.model_validate_json(raw))
        return sessions, dangling

    async def _remove(self, user_id: str, sessions: List[Session], dangling: Iterable[str] = ()) -> None:
        ids = [s.id for s in sessions] + list(dangling)
        if not ids:
            return
        async with self._client.pipeline(transaction=True) as pipe:
            for session in sessions:
                pipe.delete(self._session_key(session.id), self._token_key(session.token_hash))
            pipe.zrem(self._user_key(user_id), *ids)
            await pipe.execute()

    async def insert(self, session: Session) -> None:
        expire_at = ceil(session.expires_at.timestamp())
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.set(self._session_key(session.id), session.model_dump_json(), exat=expire_at)
            pipe.set(self._token_key(session.token_hash), session.id, exat=expire_at)
            pipe.zadd(self._user_key(session.user_id), {session.id: session.last_activity_at.timestamp()})
            await pipe.execute()

    async def delete_by_token_hash(self, token_hash: str) -> int:
        session = await self._get_by_hash(token_hash)
        if session is None:
            await self._client.delete(self._token_key(token_hash))
            return 0
        await self._remove(session.user_id, [session])
        return 1

    async def delete_by_user(self, user_id: str) -> int:
        sessions, _ = await self._load_user(user_id)
        async with self._client.pipeline(transaction=True) as pipe:
            for session in sessions:
                pipe.delete(self._session_key(session.id), self._token_key(session.token_hash))
            pipe.delete(self._user_key(user_id))
            await pipe.execute()
        return len(sessions)

    async def delete_by_id(self, session_id: str, user_id: str) -> int:
        session = await self._get(session_id)
        if session is None or session.user_id != user_id:
            return 0
        await self._remove(user_id, [session])
        return 1

    async def delete_expired(self, user_id: str, now: datetime) -> int:
        sessions, dangling = await self._load_user(user_id)
        expired = [s for s in sessions if s.is_expired(now)]
        await self._remove(user_id, expired, dangling)
        return len(expired)

    async def count_live(self, user_id: str, now: datetime) -> int:
        sessions, _ = await self._load_user(user_id)
        return sum(1 for s in sessions if s.is_live(now))

    async def find_oldest_by_activity(self, user_id: str) -> Optional[Session]:
        sessions, _ = await self._load_user(user_id)
        return _oldest(sessions)

    async def find_by_token_hash(self, token_hash: str, now: datetime) -> Optional[Session]:
        session = await self._get_by_hash(token_hash)
        if session is None or not session.is_live(now):
            return None
        return session

    async def touch_activity(self, token_hash: str, now: datetime) -> None:
        session = await self._get_by_hash(token_hash)
        if session is None:
            return
        session.last_activity_at = now
        async with self._client.pipeline(transaction=True) as pipe:
            # xx: a concurrent logout must not be undone by this write
            pipe.set(self._session_key(session.id), session.model_dump_json(), keepttl=True, xx=True)
            pipe.zadd(self._user_key(session.user_id), {session.id: now.timestamp()}, xx=True)
            await pipe.execute()

    async def list_live(self, user_id: str, now: datetime) -> List[Session]:
        sessions, _ = await self._load_user(user_id)
        return _newest_first(s for s in sessions if s.is_live(now))
