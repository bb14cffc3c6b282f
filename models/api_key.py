from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class APIKey(Base):
    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), default="Default")
    key_prefix: Mapped[str] = mapped_column(String(24), index=True)
    key_hash: Mapped[str] = mapped_column(String(128), unique=True, index=True)
    last4: Mapped[str] = mapped_column(String(4))

    # active | inactive
    status: Mapped[str] = mapped_column(String(32), default="active", nullable=False)
    # free | premium
    tier: Mapped[str] = mapped_column(String(32), default="free", nullable=False)

    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    daily_usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    monthly_usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    rate_limit: Mapped[Optional[int]] = mapped_column(Integer)
    # day | month (andere Werte werden gespeichert, aber nicht erzwungen)
    rate_limit_interval: Mapped[Optional[str]] = mapped_column(String(50))

    def usage_snapshot(self) -> dict:
        return {
            "total": self.usage_count,
            "daily": self.daily_usage_count,
            "monthly": self.monthly_usage_count,
            "lastUsed": self.last_used_at.isoformat() if self.last_used_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<APIKey(id={self.id}, prefix='{self.key_prefix}', status='{self.status}', "
            f"tier='{self.tier}', usage={self.usage_count})>"
        )
