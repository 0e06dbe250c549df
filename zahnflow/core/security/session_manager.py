"""
Session Manager - listing and revocation of a user's sessions.
"""

from typing import List
import logging

from zahnflow.core.logging_config import short
from zahnflow.core.security.authenticator import Clock
from zahnflow.core.security.tokens import hash_token
from zahnflow.models.session import ActiveSession
from zahnflow.models.user import utcnow
from zahnflow.services.session_store import SessionStore

logger = logging.getLogger(__name__)

UNKNOWN_DEVICE = "Unbekanntes Gerät"
UNKNOWN_IP = "Unbekannt"


class SessionManager:

    def __init__(
        self,
        sessions: SessionStore,
        clock: Clock = utcnow,
        unknown_device_label: str = UNKNOWN_DEVICE,
        unknown_ip_label: str = UNKNOWN_IP,
    ):
        self.sessions = sessions
        self.clock = clock
        self.unknown_device_label = unknown_device_label
        self.unknown_ip_label = unknown_ip_label

    async def logout(self, token: str) -> None:
        """Delete the session for this token. Deleting nothing is not an error."""
        token_hash = hash_token(token)
        removed = await self.sessions.delete_by_token_hash(token_hash)
        logger.info(f"👋 Logout for token {short(token_hash)} ({removed} session removed)")

    async def logout_all_sessions(self, user_id: str) -> int:
        removed = await self.sessions.delete_by_user(user_id)
        logger.info(f"👋 Logged out user {short(user_id)} everywhere ({removed} sessions)")
        return removed

    async def get_active_sessions(self, user_id: str) -> List[ActiveSession]:
        """Live sessions, most recently active first. Never exposes token hashes."""
        live = await self.sessions.list_live(user_id, self.clock())
        return [
            ActiveSession(
                id=s.id,
                device_info=s.device_info or self.unknown_device_label,
                ip_address=s.ip_address or self.unknown_ip_label,
                last_activity=s.last_activity_at,
                created_at=s.created_at,
            )
            for s in live
        ]

    async def revoke_session(self, user_id: str, session_id: str) -> bool:
        """
        Delete one session owned by ``user_id``.

        Returns:
            False if no such session exists for this user (other users'
            sessions are never touched)
        """
        removed = await self.sessions.delete_by_id(session_id, user_id)
        if removed:
            logger.info(f"🗑️ User {short(user_id)} revoked session {short(session_id)}")
        return removed > 0
