"""
Authenticator - verifies credentials and opens sessions.

Login sequence:
1. Look up the user by normalized email and verify the bcrypt hash
2. Purge the user's expired sessions
3. If the live-session cap is reached, evict the least recently active one
4. Mint a signed token and store a session keyed by its digest

Steps 2-4 are separate store operations without a surrounding
transaction. Two concurrent logins at the cap can both pass the count
check and leave the user one session over the cap until the next login
evicts again.
"""

from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4
import logging

from zahnflow.core.config import Settings
from zahnflow.core.exceptions import InvalidCredentialsError
from zahnflow.core.logging_config import short
from zahnflow.core.security.passwords import verify_password
from zahnflow.core.security.tokens import TokenCodec, hash_token
from zahnflow.models.session import LoginResult, Session, SessionInfo
from zahnflow.models.user import PublicUser, normalize_email, utcnow
from zahnflow.services.credential_store import CredentialStore
from zahnflow.services.session_store import SessionStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

MAX_SESSIONS_PER_USER = 3


class Authenticator:
    """Issues tokens and enforces the per-user session cap."""

    def __init__(
        self,
        credentials: CredentialStore,
        sessions: SessionStore,
        codec: TokenCodec,
        max_sessions_per_user: int = MAX_SESSIONS_PER_USER,
        clock: Clock = utcnow,
    ):
        self.credentials = credentials
        self.sessions = sessions
        self.codec = codec
        self.max_sessions_per_user = max_sessions_per_user
        self.clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        credentials: CredentialStore,
        sessions: SessionStore,
        clock: Clock = utcnow,
    ) -> "Authenticator":
        return cls(
            credentials=credentials,
            sessions=sessions,
            codec=TokenCodec.from_settings(settings),
            max_sessions_per_user=settings.MAX_SESSIONS_PER_USER,
            clock=clock,
        )

    async def login(
        self,
        email: str,
        password: str,
        session_info: Optional[SessionInfo] = None,
    ) -> LoginResult:
        """
        Authenticate and open a new session.

        Returns:
            LoginResult with the user (without hash) and the raw token

        Raises:
            InvalidCredentialsError: Unknown email or wrong password (same message)
        """
        user = await self.credentials.find_by_email(normalize_email(email))
        if user is None:
            logger.info("🔒 Login failed: unknown email")
            raise InvalidCredentialsError()

        if not await verify_password(password, user.password_hash):
            logger.info(f"🔒 Login failed for user {short(user.id)}: wrong password")
            raise InvalidCredentialsError()

        now = self.clock()
        purged = await self.sessions.delete_expired(user.id, now)
        if purged:
            logger.info(f"🧹 Removed {purged} expired sessions for user {short(user.id)}")

        live = await self.sessions.count_live(user.id, now)
        if live >= self.max_sessions_per_user:
            await self._evict_least_recently_active(user.id)

        token = self.codec.mint(user.id, user.email, now)
        info = session_info or SessionInfo()
        session = Session(
            id=str(uuid4()),
            user_id=user.id,
            token_hash=hash_token(token),
            device_info=info.device_info,
            ip_address=info.ip_address,
            created_at=now,
            expires_at=now + self.codec.ttl,
            last_activity_at=now,
        )
        await self.sessions.insert(session)

        logger.info(f"🔐 Created session {short(session.id)} for user {short(user.id)}")
        return LoginResult(user=user.to_public(), token=token)

    async def _evict_least_recently_active(self, user_id: str) -> None:
        oldest = await self.sessions.find_oldest_by_activity(user_id)
        if oldest is None:
            return
        await self.sessions.delete_by_id(oldest.id, user_id)
        logger.info(f"♻️ Session cap reached - evicted session {short(oldest.id)} of user {short(user_id)}")

    async def get_user_by_id(self, user_id: str) -> Optional[PublicUser]:
        user = await self.credentials.find_by_id(user_id)
        return user.to_public() if user else None
