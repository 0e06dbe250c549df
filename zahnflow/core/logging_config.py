# zahnflow/core/logging_config.py
"""Logging configuration shared by the API and the auth core"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from zahnflow.core.config import Settings, settings


def setup_logging(current: Optional[Settings] = None):
    """Konfiguriert das Logging-System"""
    current = current or settings
    log_level = current.LOG_LEVEL.upper()
    log_dir = Path(current.LOG_DIR)

    # Sicherstellen, dass der Log-Ordner existiert (auch wenn er schon da ist)
    log_dir.mkdir(parents=True, exist_ok=True)

    # Root-Logger konfigurieren
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Formatter erstellen
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Console-Handler (einmalig anhängen)
    if not any(isinstance(h, logging.StreamHandler) for h in root_logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    # File-Handler (rotierend, max. 5 MB pro Datei, max. 5 Dateien)
    log_file = (log_dir / 'zahnflow.log').resolve()
    if not any(isinstance(h, RotatingFileHandler) and h.baseFilename == str(log_file) for h in root_logger.handlers):
        file_handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=5,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Spezielle Logger-Konfigurationen
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)

    return root_logger


def short(value: str, length: int = 8) -> str:
    """Truncate secrets (tokens, hashes, ids) for log output"""
    if not value:
        return "<empty>"
    return f"{value[:length]}..."
