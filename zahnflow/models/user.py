# zahnflow/models/user.py

from datetime import datetime, timezone
from uuid import uuid4
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """E-Mail-Adressen werden case-insensitiv verglichen"""
    return email.strip().lower()


class PublicUser(BaseModel):
    """Benutzer ohne Passwort-Hash - darf an Clients ausgeliefert werden."""
    id: str
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class User(PublicUser):
    """
    Gespeicherter Benutzer inkl. bcrypt-Hash.
    Wird ausschließlich über den Seed-Schritt angelegt.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    password_hash: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def to_public(self) -> PublicUser:
        return PublicUser(**self.model_dump(exclude={"password_hash"}))
