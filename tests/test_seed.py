from conftest import engine

from models.api_key import APIKey
from seeds import api_key_seed
from utils.api_keys import find_by_token, is_usable


def test_seed_creates_usable_key(monkeypatch, db, session_factory):
    monkeypatch.setattr(api_key_seed, "engine", engine)
    monkeypatch.setattr(api_key_seed, "SessionLocal", session_factory)

    raw = api_key_seed.seed_api_key(name="Seed", tier="pro")

    row = find_by_token(db, raw)
    assert row is not None
    assert row.name == "Seed"
    assert row.tier == "pro"
    assert is_usable(row)
    assert db.query(APIKey).count() == 1
