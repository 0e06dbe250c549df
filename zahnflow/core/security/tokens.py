"""
Signed token handling.

Tokens are HS256 JWTs carrying ``userId`` and ``email`` plus ``exp`` and a
random ``jti``. They are necessary but never sufficient for access: every
validation also requires a live session whose ``token_hash`` matches
``hash_token(token)``.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt
from pydantic import ValidationError

from zahnflow.core.config import Settings, DEV_JWT_SECRET
from zahnflow.core.exceptions import config_error
from zahnflow.models.session import TokenPayload

logger = logging.getLogger(__name__)


def hash_token(token: str) -> str:
    """Deterministic one-way digest stored instead of the raw token"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class TokenCodec:
    """Mints and verifies signed session tokens."""

    def __init__(self, secret: str, algorithm: str = "HS256", ttl: timedelta = timedelta(hours=24)):
        if not secret:
            raise config_error("JWT secret must not be empty", component="TokenCodec")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenCodec":
        if settings.is_production and settings.JWT_SECRET == DEV_JWT_SECRET:
            raise config_error("JWT_SECRET must be set in production", component="TokenCodec")
        return cls(
            secret=settings.JWT_SECRET,
            algorithm=settings.JWT_ALGORITHM,
            ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
        )

    def mint(self, user_id: str, email: str, now: datetime) -> str:
        payload = {
            "userId": user_id,
            "email": email,
            "exp": now + self.ttl,
            # Two logins in the same second must not yield the same token/hash
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def decode(self, token: str) -> Optional[TokenPayload]:
        """
        Verify signature and expiry claim.

        Returns:
            TokenPayload if the token is cryptographically valid, None otherwise
        """
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
            return TokenPayload(user_id=claims["userId"], email=claims["email"])
        except jwt.ExpiredSignatureError:
            logger.debug("⏰ Token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.debug(f"🔒 Token rejected: {type(e).__name__}")
            return None
        except (KeyError, ValidationError):
            logger.warning("🔒 Token signature valid but payload incomplete")
            return None
