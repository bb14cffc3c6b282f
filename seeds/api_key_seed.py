# =============================================================================
# 🌍 seeds/api_key_seed.py
# -----------------------------------------------------------------------------
# Legt die Tabellen an und erstellt einen Entwicklungs-API-Key.
# Der Klartext-Key wird nur hier einmal ausgegeben, gespeichert wird der Hash.
# -----------------------------------------------------------------------------
# Projekt: QR-Relay API
# =============================================================================

import os
import sys

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BASE_DIR not in sys.path:
    sys.path.append(BASE_DIR)

from sqlalchemy.exc import SQLAlchemyError  # noqa: E402

import models  # noqa: E402,F401
from database import Base, SessionLocal, engine  # noqa: E402
from utils.api_keys import provision_api_key  # noqa: E402


def seed_api_key(name: str = "Development", tier: str = "free"):
    """Erstellt einen Key und gibt den Klartext zurück."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        raw, row = provision_api_key(db, name=name, tier=tier)
        print(f"✅ API-Key #{row.id} ({row.name}, {row.tier}) erstellt:")
        print(f"   {raw}")
        return raw
    except SQLAlchemyError as e:
        db.rollback()
        print(f"❌ Fehler beim Anlegen des API-Keys: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_api_key()
