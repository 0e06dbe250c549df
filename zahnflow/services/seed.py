# zahnflow/services/seed.py
"""Demo account for local development."""
import logging
from typing import Optional

from zahnflow.core.config import Settings
from zahnflow.core.security.passwords import hash_password
from zahnflow.models.user import User, normalize_email
from zahnflow.services.credential_store import CredentialStore

logger = logging.getLogger(__name__)

DEMO_EMAIL = "zahnarzt@zahnflow.de"
DEMO_PASSWORD = "ZahnFlow2024!"
DEMO_NAME = "Dr. Max Mustermann"


async def seed_demo_user(credentials: CredentialStore, settings: Settings) -> Optional[User]:
    """
    Create the demo user if it does not exist yet.

    Returns:
        The created user, or None if it already existed
    """
    if await credentials.find_by_email(normalize_email(DEMO_EMAIL)):
        logger.info("ℹ️ Demo user already exists")
        return None

    user = User(
        email=DEMO_EMAIL,
        name=DEMO_NAME,
        password_hash=await hash_password(DEMO_PASSWORD, rounds=settings.BCRYPT_ROUNDS),
    )
    user = await credentials.add(user)
    logger.info(f"🌱 Demo user created: {DEMO_EMAIL}")
    return user
