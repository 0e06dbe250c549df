"""
Token Validator - signature check plus live-session check.

A cryptographically valid token is not enough: the session record keyed
by the token digest must still exist and be unexpired. That is what makes
logout and revocation take effect immediately.
"""

from typing import Optional
import logging

from zahnflow.core.logging_config import short
from zahnflow.core.security.authenticator import Clock
from zahnflow.core.security.tokens import TokenCodec, hash_token
from zahnflow.models.session import TokenPayload
from zahnflow.models.user import utcnow
from zahnflow.services.session_store import SessionStore

logger = logging.getLogger(__name__)


class TokenValidator:

    def __init__(self, sessions: SessionStore, codec: TokenCodec, clock: Clock = utcnow):
        self.sessions = sessions
        self.codec = codec
        self.clock = clock
        self._validation_failures = 0

    async def validate(self, token: Optional[str]) -> Optional[TokenPayload]:
        """
        Returns:
            The token payload if valid, None otherwise. Invalid input never raises;
            store errors propagate.
        """
        if not token:
            return None

        payload = self.codec.decode(token)
        if payload is None:
            self._validation_failures += 1
            return None

        token_hash = hash_token(token)
        now = self.clock()
        session = await self.sessions.find_by_token_hash(token_hash, now)
        if session is None:
            logger.info(f"🚫 No live session for token {short(token_hash)}")
            self._validation_failures += 1
            return None

        await self.sessions.touch_activity(token_hash, now)
        return payload

    def get_metrics(self):
        return {"validation_failures": self._validation_failures}
