import pytest

from models.dynamic_qr import DynamicQRCode
from utils import qr_service


@pytest.fixture
def dynamic_row(db, api_key):
    _, key = api_key
    qr = qr_service.create_dynamic(db, key, {"targetUrl": "https://example.com"})["qrCode"]
    return db.query(DynamicQRCode).filter_by(short_id=qr["shortId"]).one()


@pytest.mark.parametrize("field", ["short_id", "original_data_encoded"])
def test_encoded_fields_are_immutable(db, dynamic_row, field):
    setattr(dynamic_row, field, "http://testserver/r/changed")
    with pytest.raises(ValueError):
        db.commit()
    db.rollback()


def test_target_url_can_change(db, dynamic_row):
    encoded = dynamic_row.original_data_encoded
    dynamic_row.target_url = "https://example.org/new"
    db.commit()

    db.expire_all()
    row = db.get(DynamicQRCode, dynamic_row.id)
    assert row.target_url == "https://example.org/new"
    assert row.original_data_encoded == encoded


def test_usage_snapshot_shape(api_key):
    _, key = api_key
    assert key.usage_snapshot() == {"total": 0, "daily": 0, "monthly": 0, "lastUsed": None}
