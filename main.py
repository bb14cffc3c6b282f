# =============================================================================
# 🚀 QR-Relay API – Hauptapplikation (main.py)
# =============================================================================

from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.cors import CORSMiddleware

import config
from database import Base, engine
from utils.errors import QRServiceError
from utils.responses import format_error

# -------------------------------------------------------------------------
# 1️⃣ Logging
# -------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO if config.is_production() else logging.DEBUG,
    format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
)
logger = logging.getLogger("qr_relay")


# -------------------------------------------------------------------------
# 2️⃣ FastAPI App
# -------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(_: FastAPI):
    # Produktion nutzt Alembic; lokal reicht create_all
    if not config.is_production():
        import models  # noqa: F401  (registriert alle Tabellen)
        Base.metadata.create_all(bind=engine)
    logger.info(f"🚀 QR-Relay API gestartet ({config.APP_ENV}) – Basis-URL {config.API_BASE_URL}")
    yield


app = FastAPI(title="QR-Relay API", version="1.0", lifespan=lifespan)

# -------------------------------------------------------------------------
# 🌐 CORS & Kompression
# -------------------------------------------------------------------------
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins(),
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-API-Key"],
)

# -------------------------------------------------------------------------
# 3️⃣ Artefakte (/data/static/qrcode/...)
# -------------------------------------------------------------------------
config.DATA_DIR.mkdir(parents=True, exist_ok=True)
app.mount(config.DATA_URL_PREFIX, StaticFiles(directory=str(config.DATA_DIR), check_dir=False), name="data")


# -------------------------------------------------------------------------
# 4️⃣ Request-Log
# -------------------------------------------------------------------------
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    duration = (time.perf_counter() - start) * 1000
    logger.info(f"{request.method} {request.url.path} → {response.status_code} ({duration:.2f}ms)")
    return response


# -------------------------------------------------------------------------
# 5️⃣ Fehlerbehandlung – einheitlicher Umschlag
# -------------------------------------------------------------------------
@app.exception_handler(QRServiceError)
async def qr_service_error_handler(request: Request, exc: QRServiceError):
    if exc.status_code >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc.message} – {exc.error}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.message} – {exc.error}")
    return JSONResponse(status_code=exc.status_code, content=format_error(exc.message, exc.error))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content=format_error("Invalid request", details or None))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"💥 Unerwarteter Fehler bei {request.method} {request.url.path}")
    error = "Something went wrong" if config.is_production() else str(exc)
    return JSONResponse(status_code=500, content=format_error("Internal Server Error", error))


# -------------------------------------------------------------------------
# 6️⃣ Routen
# -------------------------------------------------------------------------
from routes import qr        # /api/v1/qr/...
from routes import redirect  # /r/{short_id}

app.include_router(qr.router)
app.include_router(redirect.router)


@app.get("/health")
def health():
    return {"status": "ok", "env": config.APP_ENV}
