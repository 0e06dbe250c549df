# zahnflow/core/config.py
from typing import Optional
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings
import logging

DEV_JWT_SECRET = "your-super-secret-jwt-key-change-in-production"


class Settings(BaseSettings):
    """Grundlegende Anwendungseinstellungen"""
    APP_NAME: str = "ZahnFlow"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"

    # Token-Einstellungen
    JWT_SECRET: str = DEV_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"

    # Session-Einstellungen
    SESSION_TTL_HOURS: int = Field(default=24, gt=0)
    MAX_SESSIONS_PER_USER: int = Field(default=3, gt=0)
    UNKNOWN_DEVICE_LABEL: str = "Unbekanntes Gerät"
    UNKNOWN_IP_LABEL: str = "Unbekannt"

    # Passwort-Hashing
    BCRYPT_ROUNDS: int = Field(default=12, ge=4, le=31)

    # Speicher-Einstellungen
    REDIS_URL: Optional[str] = None
    REDIS_KEY_PREFIX: str = "zahnflow"

    # HTTP-Einstellungen
    CLIENT_URL: str = "http://localhost:5173"
    # Anzahl vorgeschalteter Proxies, deren X-Forwarded-For-Eintrag vertraut wird
    TRUSTED_PROXY_HOPS: int = Field(default=0, ge=0)
    LOGIN_RATE_LIMIT: str = "5/minute"
    AUTH_COOKIE_NAME: str = "token"

    # Demo-Daten (ohne Angabe: nur ausserhalb von production)
    SEED_DEMO_USER: Optional[bool] = None

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore"
    }

    @model_validator(mode="after")
    def _resolve_seed_default(self) -> "Settings":
        if self.SEED_DEMO_USER is None:
            self.SEED_DEMO_USER = not self.is_production
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def session_ttl_seconds(self) -> int:
        return self.SESSION_TTL_HOURS * 60 * 60


# Konfiguration als Singleton verfügbar machen
settings = Settings()


def validate_required_settings(current: Optional[Settings] = None) -> bool:
    """Prüft, ob alle notwendigen Einstellungen vorhanden sind"""
    current = current or settings
    logger = logging.getLogger(__name__)
    missing = []

    if current.JWT_SECRET == DEV_JWT_SECRET:
        missing.append("JWT_SECRET")

    if not current.REDIS_URL:
        logger.info("Kein REDIS_URL gesetzt - Sessions werden nur im Speicher gehalten.")

    if missing:
        logger.warning(f"Fehlende Umgebungsvariablen: {', '.join(missing)}")
        logger.warning("Die Anwendung nutzt unsichere Standardwerte.")
        return False

    return True
