from __future__ import annotations

import hashlib
import secrets
from datetime import datetime, timezone
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from models.api_key import APIKey


def generate_api_key() -> str:
    return f"qrr_live_{secrets.token_urlsafe(32)}"


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()


def key_prefix(api_key: str) -> str:
    return api_key[:12]


def key_last4(api_key: str) -> str:
    return api_key[-4:]


def mask_presented_key(api_key: str | None) -> str | None:
    if not api_key:
        return None
    return f"{key_prefix(api_key)}...{key_last4(api_key)}"


def is_usable(row: APIKey, now: Optional[datetime] = None) -> bool:
    """Aktiv und nicht abgelaufen."""
    if row.status != "active":
        return False
    if row.expires_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    expires_at = row.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at > now


def find_by_token(db: Session, api_key: str) -> Optional[APIKey]:
    return db.query(APIKey).filter(APIKey.key_hash == hash_api_key(api_key)).first()


def provision_api_key(
    db: Session,
    name: str = "Default",
    tier: str = "free",
    rate_limit: Optional[int] = None,
    rate_limit_interval: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> Tuple[str, APIKey]:
    """
    Legt einen neuen Schlüssel an und gibt (Klartext, Datensatz) zurück.
    Der Klartext wird nirgends gespeichert.
    """
    raw = generate_api_key()
    row = APIKey(
        name=name,
        key_prefix=key_prefix(raw),
        key_hash=hash_api_key(raw),
        last4=key_last4(raw),
        status="active",
        tier=tier,
        usage_count=0,
        daily_usage_count=0,
        monthly_usage_count=0,
        rate_limit=rate_limit,
        rate_limit_interval=rate_limit_interval,
        expires_at=expires_at,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return raw, row
