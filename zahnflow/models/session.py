# zahnflow/models/session.py

from datetime import datetime
from typing import Optional
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, Field

from zahnflow.models.user import PublicUser


class SessionInfo(BaseModel):
    """Geräte-Metadaten, die beim Login mitgeschickt werden."""
    device_info: Optional[str] = None
    ip_address: Optional[str] = None


class Session(BaseModel):
    """
    Serverseitiger Datensatz einer Anmeldung.

    Der rohe Token wird nie gespeichert, nur sein SHA-256-Digest.
    ``expires_at`` wird beim Anlegen gesetzt und nie verlängert;
    bei jeder Validierung ändert sich nur ``last_activity_at``.
    """
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    token_hash: str
    device_info: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def is_expired(self, now: datetime) -> bool:
        # expires_at == now is neither live nor purged
        return self.expires_at < now


class ActiveSession(BaseModel):
    """Session-Ansicht für die Geräteliste (ohne token_hash)."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    device_info: str = Field(serialization_alias="deviceInfo")
    ip_address: str = Field(serialization_alias="ipAddress")
    last_activity: datetime = Field(serialization_alias="lastActivity")
    created_at: datetime = Field(serialization_alias="createdAt")


class TokenPayload(BaseModel):
    """Identität, die im signierten Token steckt."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(alias="userId")
    email: str


class LoginResult(BaseModel):
    user: PublicUser
    token: str
