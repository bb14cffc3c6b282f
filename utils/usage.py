# =============================================================================
# 📈 utils/usage.py
# -----------------------------------------------------------------------------
# Nutzungszähler pro API-Key (gesamt / täglich / monatlich).
#
# - Tages-/Monatsgrenzen in UTC
# - Zähler werden bei Grenzübertritt auf das aktuelle Inkrement gesetzt
# - Aktualisierung als bedingtes UPDATE (Compare-and-Set), nie als
#   getrenntes Lesen + Schreiben
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import USAGE_CAS_MAX_ATTEMPTS
from models.api_key import APIKey
from utils.errors import NotFoundError, QuotaExceededError, StorageError

logger = logging.getLogger(__name__)

ENFORCED_INTERVALS = {"day", "month"}


@dataclass(frozen=True)
class UsageReset:
    daily_reset: bool
    monthly_reset: bool


def as_utc(value: datetime) -> datetime:
    """Naive Zeitstempel gelten als UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def reckon(last_used_at: Optional[datetime], now: datetime) -> UsageReset:
    """
    Erste Nutzung → beide Zähler zurücksetzen.
    Anderer Kalendertag (auch über Monats-/Jahresgrenzen) → Tageszähler,
    anderer Monat oder anderes Jahr → Monatszähler.
    """
    if last_used_at is None:
        return UsageReset(daily_reset=True, monthly_reset=True)

    last = as_utc(last_used_at)
    current = as_utc(now)
    return UsageReset(
        daily_reset=last.date() != current.date(),
        monthly_reset=(last.year, last.month) != (current.year, current.month),
    )


def _check_quota(row: APIKey, reset: UsageReset, increment: int) -> None:
    if row.rate_limit is None or row.rate_limit_interval not in ENFORCED_INTERVALS:
        return

    if row.rate_limit_interval == "day":
        current = 0 if reset.daily_reset else row.daily_usage_count
    else:
        current = 0 if reset.monthly_reset else row.monthly_usage_count

    if current + increment > row.rate_limit:
        raise QuotaExceededError(
            "Usage limit exceeded",
            f"Limit of {row.rate_limit} QR codes per {row.rate_limit_interval} reached",
        )


def _load(db: Session, api_key_id: int) -> APIKey:
    row = db.execute(
        select(APIKey).where(APIKey.id == api_key_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise NotFoundError("API key not found")
    return row


def record_usage(db: Session, api_key_id: int, increment: int = 1, now: Optional[datetime] = None) -> APIKey:
    """
    Bucht `increment` Nutzungen auf den Key und committet.

    Das UPDATE greift nur, wenn Gesamtzähler und last_used_at noch dem gelesenen
    Stand entsprechen. Hat ein paralleler Request gewonnen (0 Zeilen), wird neu
    gelesen und erneut versucht.
    """
    if increment < 1:
        raise ValueError("increment must be positive")

    for attempt in range(1, USAGE_CAS_MAX_ATTEMPTS + 1):
        stamp = now or datetime.now(timezone.utc)
        row = _load(db, api_key_id)
        reset = reckon(row.last_used_at, stamp)
        _check_quota(row, reset, increment)

        stmt = update(APIKey).where(
            APIKey.id == api_key_id,
            APIKey.usage_count == row.usage_count,
        )
        if row.last_used_at is None:
            stmt = stmt.where(APIKey.last_used_at.is_(None))
        else:
            stmt = stmt.where(APIKey.last_used_at == row.last_used_at)

        stmt = stmt.values(
            usage_count=APIKey.usage_count + increment,
            daily_usage_count=increment if reset.daily_reset else APIKey.daily_usage_count + increment,
            monthly_usage_count=increment if reset.monthly_reset else APIKey.monthly_usage_count + increment,
            last_used_at=stamp,
        ).execution_options(synchronize_session=False)

        try:
            result = db.execute(stmt)
            if result.rowcount == 1:
                db.commit()
                return _load(db, api_key_id)
            db.rollback()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to update usage", str(exc))

        logger.debug(f"Usage-CAS für Key {api_key_id} verloren (Versuch {attempt}) – erneut")

    raise StorageError("Failed to update usage", "Too many concurrent updates for this API key")
