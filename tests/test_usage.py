from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

import utils.usage as usage
from models.api_key import APIKey
from utils.api_keys import provision_api_key
from utils.errors import QuotaExceededError
from utils.usage import reckon, record_usage

UTC = timezone.utc


def test_first_use_resets_both_counters():
    result = reckon(None, datetime(2024, 5, 10, 12, tzinfo=UTC))
    assert result.daily_reset and result.monthly_reset


def test_same_day_keeps_counters():
    last = datetime(2024, 5, 10, 0, 0, 1, tzinfo=UTC)
    now = datetime(2024, 5, 10, 23, 59, 59, tzinfo=UTC)
    result = reckon(last, now)
    assert not result.daily_reset
    assert not result.monthly_reset


def test_crossing_midnight_by_one_second_resets_daily_only():
    last = datetime(2024, 5, 10, 23, 59, 59, tzinfo=UTC)
    result = reckon(last, last + timedelta(seconds=1))
    assert result.daily_reset
    assert not result.monthly_reset


@pytest.mark.parametrize(
    "last, now",
    [
        (datetime(2024, 1, 31, 23, 59, 59, tzinfo=UTC), datetime(2024, 2, 1, 0, 0, 0, tzinfo=UTC)),
        (datetime(2023, 12, 31, 23, 59, 59, tzinfo=UTC), datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC)),
        # gleicher Tag im Monat, anderer Monat
        (datetime(2024, 1, 5, 10, tzinfo=UTC), datetime(2024, 2, 5, 10, tzinfo=UTC)),
        # gleicher Tag und Monat, anderes Jahr
        (datetime(2023, 3, 7, 10, tzinfo=UTC), datetime(2024, 3, 7, 10, tzinfo=UTC)),
    ],
)
def test_month_or_year_boundary_resets_both(last, now):
    result = reckon(last, now)
    assert result.daily_reset and result.monthly_reset


def test_naive_timestamps_are_utc():
    last = datetime(2024, 5, 10, 23, 30)  # naiv = UTC
    now = datetime(2024, 5, 11, 1, 0, tzinfo=timezone(timedelta(hours=2)))  # = 23:00 UTC am 10.
    result = reckon(last, now)
    assert not result.daily_reset


def test_record_usage_counts_and_rolls_over(db, api_key):
    _, row = api_key
    day1 = datetime(2024, 5, 10, 9, tzinfo=UTC)

    updated = record_usage(db, row.id, 1, now=day1)
    assert (updated.usage_count, updated.daily_usage_count, updated.monthly_usage_count) == (1, 1, 1)

    updated = record_usage(db, row.id, 3, now=day1 + timedelta(hours=2))
    assert (updated.usage_count, updated.daily_usage_count, updated.monthly_usage_count) == (4, 4, 4)

    updated = record_usage(db, row.id, 2, now=day1 + timedelta(days=1))
    assert (updated.usage_count, updated.daily_usage_count, updated.monthly_usage_count) == (6, 2, 6)

    updated = record_usage(db, row.id, 1, now=datetime(2024, 6, 1, tzinfo=UTC))
    assert (updated.usage_count, updated.daily_usage_count, updated.monthly_usage_count) == (7, 1, 1)


def test_record_usage_rejects_non_positive_increment(db, api_key):
    with pytest.raises(ValueError):
        record_usage(db, api_key[1].id, 0)


def test_daily_quota_is_enforced(db):
    _, row = provision_api_key(db, name="Limitiert", rate_limit=2, rate_limit_interval="day")
    now = datetime(2024, 5, 10, 9, tzinfo=UTC)
    record_usage(db, row.id, 2, now=now)

    with pytest.raises(QuotaExceededError):
        record_usage(db, row.id, 1, now=now + timedelta(minutes=1))

    db.expire_all()
    assert db.get(APIKey, row.id).usage_count == 2

    # neuer Tag → wieder erlaubt
    updated = record_usage(db, row.id, 1, now=now + timedelta(days=1))
    assert updated.daily_usage_count == 1


def test_monthly_quota_is_enforced_for_bulk_increments(db):
    _, row = provision_api_key(db, name="Monat", rate_limit=5, rate_limit_interval="month")
    with pytest.raises(QuotaExceededError):
        record_usage(db, row.id, 6)


def test_unknown_interval_is_not_enforced(db):
    _, row = provision_api_key(db, name="Stunde", rate_limit=1, rate_limit_interval="hour")
    record_usage(db, row.id, 1)
    updated = record_usage(db, row.id, 1)
    assert updated.usage_count == 2


def test_concurrent_writer_does_not_lose_increments(db, api_key, session_factory, monkeypatch):
    """Ein paralleler Schreiber gewinnt zwischen Lesen und UPDATE → neuer Versuch."""
    _, row = api_key
    original_load = usage._load
    state = {"calls": 0}

    def racing_load(session, api_key_id):
        loaded = original_load(session, api_key_id)
        state["calls"] += 1
        if state["calls"] == 1:
            other = session_factory()
            other.execute(
                update(APIKey)
                .where(APIKey.id == api_key_id)
                .values(usage_count=APIKey.usage_count + 1, last_used_at=datetime.now(UTC))
            )
            other.commit()
            other.close()
        return loaded

    monkeypatch.setattr(usage, "_load", racing_load)
    updated = record_usage(db, row.id, 1)

    assert updated.usage_count == 2
    assert state["calls"] >= 3  # stale read, retry read, reload after commit
