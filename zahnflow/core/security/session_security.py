"""
Session security wiring.

Bundles the Authenticator, Token Validator and Session Manager over one
pair of stores and one clock, and exposes them as a process-wide instance
for FastAPI dependencies (initialized in the app lifespan).
"""

from dataclasses import dataclass
from typing import Optional
import logging

from zahnflow.core.config import Settings
from zahnflow.core.exceptions import store_error
from zahnflow.core.security.authenticator import Authenticator, Clock
from zahnflow.core.security.session_manager import SessionManager
from zahnflow.core.security.token_validator import TokenValidator
from zahnflow.models.user import utcnow
from zahnflow.services.credential_store import CredentialStore
from zahnflow.services.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class AuthServices:
    credentials: CredentialStore
    sessions: SessionStore
    authenticator: Authenticator
    validator: TokenValidator
    manager: SessionManager


def build_auth_services(
    settings: Settings,
    credentials: CredentialStore,
    sessions: SessionStore,
    clock: Clock = utcnow,
) -> AuthServices:
    authenticator = Authenticator.from_settings(settings, credentials, sessions, clock=clock)
    return AuthServices(
        credentials=credentials,
        sessions=sessions,
        authenticator=authenticator,
        validator=TokenValidator(sessions, authenticator.codec, clock=clock),
        manager=SessionManager(
            sessions,
            clock=clock,
            unknown_device_label=settings.UNKNOWN_DEVICE_LABEL,
            unknown_ip_label=settings.UNKNOWN_IP_LABEL,
        ),
    )


# Global instance - initialized in main.py
auth_services: Optional[AuthServices] = None


def get_auth_services() -> AuthServices:
    """
    Get the global auth services instance.

    Follows FastAPI dependency injection pattern.
    """
    if auth_services is None:
        raise store_error("Auth services not initialized", operation="get_auth_services")
    return auth_services


def init_auth_services(
    settings: Settings,
    credentials: CredentialStore,
    sessions: SessionStore,
    clock: Clock = utcnow,
) -> AuthServices:
    """Initialize the global auth services"""
    global auth_services
    auth_services = build_auth_services(settings, credentials, sessions, clock=clock)
    logger.info(
        f"🔐 Initialized auth services ({type(sessions).__name__}, "
        f"max {settings.MAX_SESSIONS_PER_USER} sessions/user)"
    )
    return auth_services
