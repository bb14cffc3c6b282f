import pytest

from models.dynamic_qr import DynamicQRCode
from models.scan_event import ScanEvent
from utils import qr_service


async def _create(client, headers, target="https://example.com/landing"):
    response = await client.post("/api/v1/qr/dynamic/create", json={"targetUrl": target}, headers=headers)
    return response.json()["data"]["qrCode"]["shortId"]


@pytest.mark.asyncio
async def test_unknown_short_id_returns_404_envelope(client):
    response = await client.get("/r/doesnotexist")
    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "QR code not found",
        "error": "The requested QR code does not exist or does not belong to this API key",
    }


@pytest.mark.asyncio
async def test_scan_records_client_details(client, db, auth_headers):
    short_id = await _create(client, auth_headers)

    response = await client.get(
        f"/r/{short_id}",
        headers={
            "X-Forwarded-For": "203.0.113.7, 10.0.0.1",
            "User-Agent": "ScannerApp/2.1",
            "X-Country": "DE",
        },
    )
    assert response.status_code == 302

    row = db.query(DynamicQRCode).filter_by(short_id=short_id).one()
    scan = db.query(ScanEvent).filter_by(dynamic_qr_code_id=row.id).one()
    assert scan.ip_address == "203.0.113.7"
    assert scan.user_agent == "ScannerApp/2.1"
    assert scan.geolocation == {"country": "DE"}
    assert scan.scanned_at is not None


@pytest.mark.asyncio
async def test_scan_without_country_has_no_geolocation(client, db, auth_headers):
    short_id = await _create(client, auth_headers)
    await client.get(f"/r/{short_id}")

    scan = db.query(ScanEvent).one()
    assert scan.geolocation is None


@pytest.mark.asyncio
async def test_failed_scan_insert_still_redirects(client, db, auth_headers, monkeypatch):
    short_id = await _create(client, auth_headers)

    def broken_scan_event(**kwargs):
        kwargs["dynamic_qr_code_id"] = None  # verletzt NOT NULL
        return ScanEvent(**kwargs)

    monkeypatch.setattr(qr_service, "ScanEvent", broken_scan_event)

    response = await client.get(f"/r/{short_id}")
    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/landing"
    assert db.query(ScanEvent).count() == 0


def test_redirect_with_sync_client(db, api_key):
    from fastapi.testclient import TestClient

    from main import app

    qr = qr_service.create_dynamic(db, api_key[1], {"targetUrl": "https://example.com/sync"})["qrCode"]

    with TestClient(app) as client:
        response = client.get(f"/r/{qr['shortId']}", follow_redirects=False)

    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/sync"
