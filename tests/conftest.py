import os, sys, tempfile
from io import BytesIO

# ⚙️ Umgebung setzen, BEVOR config/main importiert werden
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_BASE_URL"] = "http://testserver"
os.environ["APP_ENV"] = "development"
os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="qr-relay-tests-")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  (Tabellen registrieren)
from database import Base, get_db
from main import app
from utils.api_keys import provision_api_key

# 🧪 Eine In-Memory-Datenbank für alle Sessions (StaticPool = eine Verbindung)
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_schema():
    """Jeder Test startet mit leeren Tabellen."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def api_key(db):
    """(Klartext, APIKey) für einen aktiven Free-Key."""
    return provision_api_key(db, name="Tests")


@pytest.fixture
def other_api_key(db):
    return provision_api_key(db, name="Fremder Key")


@pytest.fixture
def auth_headers(api_key):
    return {"X-API-Key": api_key[0]}


@pytest_asyncio.fixture
async def client():
    """Erstellt einen funktionierenden Testclient."""
    transport = ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def make_logo_bytes(size=(40, 40), color=(255, 0, 0, 255), fmt="PNG") -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def logo_bytes():
    return make_logo_bytes()


@pytest.fixture
def stub_logo(monkeypatch, logo_bytes):
    """Logo-Abruf ohne Netzwerk: liefert ein rotes PNG."""
    calls = []

    def fake_fetch(url, *args, **kwargs):
        calls.append(url)
        return logo_bytes

    monkeypatch.setattr("utils.logo_compositor.fetch_logo", fake_fetch)
    return calls


@pytest.fixture
def failing_logo(monkeypatch):
    """Logo-Abruf schlägt immer fehl (wie HTTP 404)."""
    from utils.errors import LogoFetchError

    def fake_fetch(url, *args, **kwargs):
        raise LogoFetchError("Failed to fetch logo", "Logo URL returned HTTP 404")

    monkeypatch.setattr("utils.logo_compositor.fetch_logo", fake_fetch)
