# =============================================================================
# 📦 DynamicQRCode Model – dynamischer QR-Code mit änderbarem Weiterleitungsziel
# =============================================================================

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text, event, inspect
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Mapped, Mapper, mapped_column, relationship

from database import Base

if TYPE_CHECKING:
    from models.scan_event import ScanEvent


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Felder, die nach dem Anlegen nie mehr geändert werden dürfen:
# das QR-Bild kodiert {base}/r/{short_id} für immer.
IMMUTABLE_FIELDS = ("short_id", "original_data_encoded")


class DynamicQRCode(Base):
    """
    Dynamischer QR-Code.
    Das Bild kodiert immer `original_data_encoded` ({base}/r/{short_id});
    nur `target_url` (und `updated_at`) ändern sich bei einem Update.
    """
    __tablename__ = "dynamic_qr_codes"

    # ---------------------------------------------------------------------
    # 🧾 Basisattribute
    # ---------------------------------------------------------------------
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)

    api_key_id: Mapped[int] = mapped_column(
        ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # ---------------------------------------------------------------------
    # 🔗 Ziel & kodierter Inhalt
    # ---------------------------------------------------------------------
    target_url: Mapped[str] = mapped_column(Text, nullable=False)
    original_data_encoded: Mapped[str] = mapped_column(Text, nullable=False)

    # 🎨 Snapshot der Design-Parameter bei Erstellung
    customization_params: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    image_path: Mapped[Optional[str]] = mapped_column(String(255))

    # ---------------------------------------------------------------------
    # 🕒 Zeitstempel
    # ---------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, nullable=False)

    # ---------------------------------------------------------------------
    # 🔗 Beziehungen
    # ---------------------------------------------------------------------
    scans: Mapped[list["ScanEvent"]] = relationship(
        "ScanEvent",
        back_populates="dynamic_qr_code",
        cascade="all, delete-orphan",
        lazy="select",
    )

    def __repr__(self) -> str:
        return (
            f"<DynamicQRCode(id={self.id}, short_id='{self.short_id}', "
            f"api_key_id={self.api_key_id}, target='{self.target_url}')>"
        )


# =============================================================================
# ⚙️ Event: Unveränderliche Felder schützen
# =============================================================================

@event.listens_for(DynamicQRCode, "before_update")  # type: ignore[misc]
def protect_encoded_data(mapper: Mapper, connection: Connection, target: DynamicQRCode) -> None:
    """
    Verhindert, dass short_id oder original_data_encoded nach dem Anlegen
    überschrieben werden.
    """
    state = inspect(target)
    for field in IMMUTABLE_FIELDS:
        history = state.attrs[field].history
        if history.added and (not history.deleted or history.deleted[0] != history.added[0]):
            raise ValueError(f"{field} is immutable once the dynamic QR code exists")
