# =============================================================================
# 📊 models/scan_event.py
# -----------------------------------------------------------------------------
# Enthält das SQLAlchemy-Modell für Scans dynamischer QR-Codes.
# Jeder Datensatz entspricht einer einzelnen Weiterleitung über /r/{shortId}.
# Nur anhängen, nie ändern.
# -----------------------------------------------------------------------------
# Projekt: QR-Relay API
# =============================================================================

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from database import Base


def utc_now():
    """Gibt aktuelle UTC-Zeit (timezone-aware) zurück."""
    return datetime.now(timezone.utc)


class ScanEvent(Base):
    __tablename__ = "scan_events"
    __table_args__ = {
        "mysql_engine": "InnoDB",
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci"
    }

    # ---------------------------------------------------------------------
    # 🔹 Primär- & Fremdschlüssel
    # ---------------------------------------------------------------------
    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    dynamic_qr_code_id = Column(
        Integer,
        ForeignKey("dynamic_qr_codes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # ---------------------------------------------------------------------
    # 🔹 Scan-Informationen (best effort)
    # ---------------------------------------------------------------------
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    geolocation = Column(JSON, nullable=True)          # z. B. {"country": "DE"}

    # ---------------------------------------------------------------------
    # 🔹 Zeitstempel (UTC-aware)
    # ---------------------------------------------------------------------
    scanned_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # ---------------------------------------------------------------------
    # 🔹 Beziehungen
    # ---------------------------------------------------------------------
    dynamic_qr_code = relationship("DynamicQRCode", back_populates="scans")

    def __repr__(self):
        return (
            f"<ScanEvent(id={self.id}, qr_id={self.dynamic_qr_code_id}, "
            f"ip='{self.ip_address}', scanned_at={self.scanned_at})>"
        )
