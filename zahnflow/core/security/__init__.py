"""
Security module.

Centralizes the authenticated-session subsystem:
- Credential verification and token issuance (Authenticator)
- Token + live-session validation (TokenValidator)
- Session listing and revocation (SessionManager)

The HTTP layer calls into this package only through these classes.
"""

from .authenticator import Authenticator, MAX_SESSIONS_PER_USER
from .passwords import hash_password, verify_password
from .session_manager import SessionManager
from .session_security import (
    AuthServices,
    build_auth_services,
    get_auth_services,
    init_auth_services
)
from .token_validator import TokenValidator
from .tokens import TokenCodec, hash_token

__all__ = [
    'Authenticator',
    'MAX_SESSIONS_PER_USER',
    'hash_password',
    'verify_password',
    'SessionManager',
    'AuthServices',
    'build_auth_services',
    'get_auth_services',
    'init_auth_services',
    'TokenValidator',
    'TokenCodec',
    'hash_token'
]
