# =============================================================================
# ⚙️ config.py
# -----------------------------------------------------------------------------
# Zentrale Konfiguration für die QR-Relay API.
# Lädt .env aus dem Projektverzeichnis und stellt alle Werte als
# Modul-Konstanten bereit.
# -----------------------------------------------------------------------------
# Projekt: QR-Relay API
# =============================================================================

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import quote_plus

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# 🔹 .env laden (muss vor allen os.getenv-Aufrufen passieren)
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(dotenv_path=BASE_DIR / ".env")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} ist keine Zahl – verwende {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"⚠️ {name}={raw!r} ist keine Ganzzahl – verwende {default}")
        return default


def _default_database_url() -> str:
    user = os.getenv("MYSQL_USER", "root")
    password = quote_plus(os.getenv("MYSQL_PASS", ""))
    host = os.getenv("MYSQL_HOST", "localhost")
    port = os.getenv("MYSQL_PORT", "3306")
    name = os.getenv("MYSQL_DB", "qr_relay")
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"


# -------------------------------------------------------------------------
# 🗄️ Datenbank
# -------------------------------------------------------------------------
DATABASE_URL: str = os.getenv("DATABASE_URL") or _default_database_url()

# -------------------------------------------------------------------------
# 🌍 Öffentliche Basis-URL (für /r/{shortId} und Download-Links)
# -------------------------------------------------------------------------
API_BASE_URL: str = (os.getenv("API_BASE_URL") or "http://localhost:8000").rstrip("/")
if not os.getenv("API_BASE_URL"):
    logger.warning(f"⚠️ API_BASE_URL nicht gesetzt – verwende {API_BASE_URL}")

PORT: int = _env_int("PORT", 8000)

# development | production
APP_ENV: str = (os.getenv("APP_ENV") or "development").strip().lower()

# -------------------------------------------------------------------------
# 📁 Artefakt-Speicher
# -------------------------------------------------------------------------
DATA_DIR: Path = Path(os.getenv("DATA_DIR") or BASE_DIR / "data").resolve()
DATA_URL_PREFIX = "/data"

# -------------------------------------------------------------------------
# 🖼️ Logo-Abruf
# -------------------------------------------------------------------------
LOGO_FETCH_TIMEOUT: float = _env_float("LOGO_FETCH_TIMEOUT", 5.0)
LOGO_MAX_BYTES: int = _env_int("LOGO_MAX_BYTES", 5 * 1024 * 1024)

# -------------------------------------------------------------------------
# 📦 Limits
# -------------------------------------------------------------------------
BULK_MAX_JOBS: int = _env_int("BULK_MAX_JOBS", 100)
SHORT_ID_LENGTH = 10
SHORT_ID_MAX_ATTEMPTS = 5
USAGE_CAS_MAX_ATTEMPTS = 5


def is_production() -> bool:
    return APP_ENV == "production"


def cors_origins() -> list[str]:
    """Produktion: nur die eigene Basis-URL, sonst alle Origins."""
    return [API_BASE_URL] if is_production() else ["*"]
