# =============================================================================
# 🧩 utils/qr_service.py
# -----------------------------------------------------------------------------
# Ablauf-Steuerung aller QR-Anfragen der API:
#
#   statisch   → Parameter → Hash → Rendern → Logo (Pflicht) → Nutzung → Datei
#   dynamisch  → Parameter → Short-ID → Rendern {base}/r/{id} → Logo (optional)
#                → Nutzung → Datei + Datenbankzeile
#   bulk       → Nutzung (einmal, Anzahl Jobs) → je Job isoliert rendern
#   redirect   → Lookup ohne Key-Bindung → Scan (best effort) → Ziel-URL
#
# Die Routen bleiben dünn; alle Regeln liegen hier.
# =============================================================================

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

import config
from models.api_key import APIKey
from models.dynamic_qr import DynamicQRCode
from models.scan_event import ScanEvent
from utils.errors import NotFoundError, QRServiceError, StorageError, ValidationError
from utils.logo_compositor import LogoOutcome, LogoPolicy, apply_logo
from utils.qr_codec import encode_raster, render_qr
from utils.qr_params import (
    KIND_BULK,
    KIND_DYNAMIC,
    KIND_STATIC,
    VisualParams,
    canonical_hash,
    file_extension,
    is_valid_url,
    output_format,
    resolve_request,
)
from utils.qr_storage import (
    download_url,
    find_static_artifact,
    new_batch_id,
    new_file_id,
    new_short_id,
    remove_artifact,
    write_artifact,
)
from utils.usage import as_utc, record_usage

logger = logging.getLogger(__name__)

DYNAMIC_NOT_FOUND = (
    "Dynamic QR code not found",
    "The requested dynamic QR code does not exist or does not belong to this API key",
)
QR_NOT_FOUND = (
    "QR code not found",
    "The requested QR code does not exist or does not belong to this API key",
)


# ---------------------------------------------------------------------------
# 🔧 Hilfsfunktionen
# ---------------------------------------------------------------------------

@contextmanager
def _timed(operation: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.debug(f"⏱️ {operation}: {(time.perf_counter() - start) * 1000:.2f}ms")


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return as_utc(value).isoformat().replace("+00:00", "Z")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _customization(params: VisualParams) -> Dict[str, Any]:
    wire = params.to_wire()
    wire.pop("size")
    wire.pop("format")
    return wire


def _metadata(
    payload: str,
    params: VisualParams,
    fmt: str,
    substituted: bool,
    generated_hash: Optional[str],
    timestamp: datetime,
) -> Dict[str, Any]:
    meta: Dict[str, Any] = {
        "data": payload,
        "size": params.size,
        "format": fmt,
        "customization": _customization(params),
    }
    if generated_hash is not None:
        meta["generatedHash"] = generated_hash
    meta["timestamp"] = _iso(timestamp)
    if substituted:
        meta["formatSubstituted"] = True
        meta["requestedFormat"] = params.format
    return meta


def render_artifact(
    payload: str,
    params: VisualParams,
    fmt: str,
    policy: LogoPolicy,
) -> Tuple[bytes, Optional[LogoOutcome]]:
    """
    Ein Zweig je (Format, Logo):
      svg ohne Logo    → Vektor direkt
      Raster ohne Logo → PNG/JPEG
      Raster mit Logo  → Logo-Schritt gemäß Policy, dann PNG/JPEG
    (svg mit Logo wurde vorher per output_format() auf png umgestellt.)
    """
    with _timed("QR-Rendering"):
        rendered = render_qr(payload, params, fmt)
    if rendered.is_vector:
        return rendered.svg, None

    with _timed("Logo-Schritt"):
        outcome = apply_logo(rendered.image, params, policy)
    with _timed("Kodierung"):
        content = encode_raster(outcome.image, fmt)
    return content, outcome


def _find_owned(db: Session, api_key_id: int, short_id: str) -> Optional[DynamicQRCode]:
    return (
        db.query(DynamicQRCode)
        .filter(DynamicQRCode.short_id == short_id, DynamicQRCode.api_key_id == api_key_id)
        .first()
    )


def _scan_stats(db: Session, qr_id: int) -> Tuple[int, Optional[datetime]]:
    total, last = db.execute(
        select(func.count(ScanEvent.id), func.max(ScanEvent.scanned_at)).where(
            ScanEvent.dynamic_qr_code_id == qr_id
        )
    ).one()
    return int(total or 0), last


def _short_id_taken(db: Session, short_id: str) -> bool:
    return db.query(DynamicQRCode.id).filter(DynamicQRCode.short_id == short_id).first() is not None


def allocate_short_id(db: Session) -> str:
    """Freie Short-ID per Vorab-Prüfung; Kollisionen beim Insert fängt create_dynamic ab."""
    for _ in range(config.SHORT_ID_MAX_ATTEMPTS):
        candidate = new_short_id()
        if not _short_id_taken(db, candidate):
            return candidate
        logger.warning(f"⚠️ Short-ID-Kollision: {candidate}")
    raise StorageError("Failed to create dynamic QR code", "Could not allocate a unique short id")


# ---------------------------------------------------------------------------
# 🟦 Statisch
# ---------------------------------------------------------------------------

def generate_static(db: Session, api_key: APIKey, raw: Dict[str, Any]) -> Dict[str, Any]:
    request = resolve_request(raw, KIND_STATIC)
    params = request.params
    digest = canonical_hash(request.payload, params)
    fmt, substituted = output_format(params)
    if substituted:
        logger.warning(f"⚠️ SVG mit Logo angefordert – liefere PNG ({digest})")

    logger.info(f"🟦 Statischer QR: size={params.size}, format={fmt}, logo={params.has_logo}")
    content, _ = render_artifact(request.payload, params, fmt, LogoPolicy.REQUIRED)

    with _timed("Nutzung"):
        record_usage(db, api_key.id, 1)

    with _timed("Speichern"):
        artifact = write_artifact("static", api_key.id, f"{digest}.{file_extension(fmt)}", content)

    logger.info(f"✅ Statischer QR gespeichert: {artifact.public_path}")
    return {
        "qrCode": {
            "filePath": artifact.public_path,
            "downloadUrl": download_url(artifact.public_path, KIND_STATIC),
            "metadata": _metadata(request.payload, params, fmt, substituted, digest, _utc_now()),
        }
    }


# ---------------------------------------------------------------------------
# 🔁 Dynamisch
# ---------------------------------------------------------------------------

def create_dynamic(db: Session, api_key: APIKey, raw: Dict[str, Any]) -> Dict[str, Any]:
    request = resolve_request(raw, KIND_DYNAMIC)
    params = request.params
    fmt, substituted = output_format(params)
    ext = file_extension(fmt)
    usage: Optional[Dict[str, Any]] = None

    logger.info(f"🔁 Dynamischer QR → {request.payload} (format={fmt}, logo={params.has_logo})")

    for attempt in range(1, config.SHORT_ID_MAX_ATTEMPTS + 1):
        short_id = allocate_short_id(db)
        encoded = f"{config.API_BASE_URL}/r/{short_id}"
        content, outcome = render_artifact(encoded, params, fmt, LogoPolicy.BEST_EFFORT)

        if usage is None:
            with _timed("Nutzung"):
                usage = record_usage(db, api_key.id, 1).usage_snapshot()

        now = _utc_now()
        row = DynamicQRCode(
            short_id=short_id,
            api_key_id=api_key.id,
            target_url=request.payload,
            original_data_encoded=encoded,
            customization_params=params.to_wire(),
            created_at=now,
            updated_at=now,
        )
        db.add(row)

        # Zeile zuerst einfügen: eine vergebene Short-ID darf keine fremde Datei überschreiben
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            if _short_id_taken(db, short_id):
                logger.warning(f"⚠️ Short-ID {short_id} parallel vergeben (Versuch {attempt}) – neuer Versuch")
                continue
            raise StorageError("Failed to create dynamic QR code", str(exc.orig))
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError("Failed to create dynamic QR code", str(exc))

        try:
            artifact = write_artifact("dynamic", api_key.id, f"{short_id}.{ext}", content)
        except StorageError:
            db.rollback()
            raise

        row.image_path = artifact.public_path
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            remove_artifact(artifact)
            raise StorageError("Failed to create dynamic QR code", str(exc))

        metadata = _metadata(encoded, params, fmt, substituted, short_id, now)
        metadata["customization"]["logoEmbedded"] = bool(outcome and outcome.embedded)
        if outcome and outcome.reason:
            metadata["customization"]["logoError"] = outcome.reason

        logger.info(f"✅ Dynamischer QR erstellt: {short_id} → {artifact.public_path}")
        return {
            "qrCode": {
                "shortId": short_id,
                "filePath": artifact.public_path,
                "downloadUrl": download_url(artifact.public_path, KIND_DYNAMIC),
                "targetUrl": request.payload,
                "originalDataEncoded": encoded,
                "metadata": metadata,
                "analytics": {
                    "totalScans": 0,
                    "lastScanned": None,
                    "createdAt": _iso(now),
                    "updatedAt": _iso(now),
                },
                "apiKey": {
                    "id": api_key.id,
                    "name": api_key.name,
                    "usage": usage,
                },
            }
        }

    raise StorageError("Failed to create dynamic QR code", "Could not allocate a unique short id")


def update_dynamic_target(db: Session, api_key: APIKey, short_id: str, new_target_url: Any) -> Dict[str, Any]:
    """Ändert nur target_url/updated_at – das Bild bleibt unverändert."""
    if new_target_url is None or (isinstance(new_target_url, str) and not new_target_url.strip()):
        raise ValidationError("Missing required field", "newTargetUrl is required")
    if not is_valid_url(new_target_url):
        raise ValidationError("Invalid URL format", "The provided newTargetUrl is not a valid URL")

    row = _find_owned(db, api_key.id, short_id)
    if row is None:
        logger.warning(f"⚠️ Update: dynamischer QR {short_id} nicht gefunden")
        raise NotFoundError(*DYNAMIC_NOT_FOUND)

    now = _utc_now()
    row.target_url = new_target_url.strip()
    row.updated_at = now
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageError("Failed to update dynamic QR code", str(exc))

    logger.info(f"🔁 Ziel aktualisiert: {short_id} → {new_target_url}")
    return {
        "update": {
            "shortId": short_id,
            "newTargetUrl": new_target_url.strip(),
            "updatedAt": _iso(now),
        }
    }


def get_dynamic_analytics(db: Session, api_key: APIKey, short_id: str) -> Dict[str, Any]:
    row = _find_owned(db, api_key.id, short_id)
    if row is None:
        logger.warning(f"⚠️ Analytics: dynamischer QR {short_id} nicht gefunden")
        raise NotFoundError(*DYNAMIC_NOT_FOUND)

    with _timed("Analytics"):
        total, last = _scan_stats(db, row.id)

    return {
        "analytics": {
            "shortId": row.short_id,
            "totalScans": total,
            "lastScanned": _iso(last),
            "createdAt": _iso(row.created_at),
            "lastUpdated": _iso(row.updated_at),
            "targetUrl": row.target_url,
            "scanMetrics": {"total": total},
        }
    }


# ---------------------------------------------------------------------------
# 📦 Bulk
# ---------------------------------------------------------------------------

@dataclass
class JobResult:
    index: int
    descriptor: Optional[Dict[str, Any]] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.descriptor is not None


def _run_bulk_job(api_key_id: int, batch_id: str, index: int, job: Any) -> JobResult:
    try:
        request = resolve_request(job, KIND_BULK)
        params = request.params
        fmt, substituted = output_format(params)
        content, _ = render_artifact(request.payload, params, fmt, LogoPolicy.BEST_EFFORT)
        artifact = write_artifact(
            "bulk", api_key_id, f"{new_file_id()}.{file_extension(fmt)}", content, batch_id=batch_id
        )
    except QRServiceError as exc:
        logger.warning(f"⚠️ Bulk-Job {index} übersprungen: {exc.error}")
        return JobResult(index=index, reason=exc.error)
    except Exception as exc:
        # Ein Job darf den Batch nie abbrechen
        logger.exception(f"💥 Bulk-Job {index} fehlgeschlagen")
        return JobResult(index=index, reason=f"Unexpected error: {exc}")

    return JobResult(
        index=index,
        descriptor={
            "filePath": artifact.public_path,
            "downloadUrl": download_url(artifact.public_path, KIND_BULK),
            "metadata": _metadata(request.payload, params, fmt, substituted, None, _utc_now()),
        },
    )


def generate_bulk(db: Session, api_key: APIKey, jobs: Any) -> Dict[str, Any]:
    """
    Nutzung wird einmal für alle Jobs gebucht (auch für fehlerhafte).
    Fehlgeschlagene Jobs landen in `skipped`, der Rest wird trotzdem geliefert.
    """
    if not isinstance(jobs, list) or not jobs:
        raise ValidationError("Invalid request", "Request body must contain a non-empty 'jobs' array")
    if len(jobs) > config.BULK_MAX_JOBS:
        raise ValidationError("Invalid request", f"A bulk request may contain at most {config.BULK_MAX_JOBS} jobs")

    with _timed("Nutzung"):
        record_usage(db, api_key.id, len(jobs))

    batch_id = new_batch_id()
    logger.info(f"📦 Bulk {batch_id}: {len(jobs)} Jobs")
    with _timed(f"Bulk {batch_id}"):
        results: List[JobResult] = [
            _run_bulk_job(api_key.id, batch_id, index, job) for index, job in enumerate(jobs)
        ]

    generated = [r.descriptor for r in results if r.ok]
    skipped = [{"index": r.index, "reason": r.reason} for r in results if not r.ok]
    logger.info(f"✅ Bulk {batch_id}: {len(generated)}/{len(jobs)} erzeugt")
    return {
        "bulkRequest": {
            "bulkRequestId": batch_id,
            "totalRequested": len(jobs),
            "totalGenerated": len(generated),
            "qrCodes": generated,
            "skipped": skipped,
        }
    }


# ---------------------------------------------------------------------------
# 🔍 Abruf
# ---------------------------------------------------------------------------

def get_qr_code(db: Session, api_key: APIKey, identifier: str) -> Dict[str, Any]:
    """Dynamischer QR per Short-ID oder statisches Artefakt per Hash."""
    row = _find_owned(db, api_key.id, identifier)
    if row is not None:
        total, last = _scan_stats(db, row.id)
        snapshot = dict(row.customization_params or {})
        return {
            "type": "dynamic",
            "qrCode": {
                "shortId": row.short_id,
                "filePath": row.image_path,
                "downloadUrl": download_url(row.image_path, KIND_DYNAMIC) if row.image_path else None,
                "targetUrl": row.target_url,
                "originalDataEncoded": row.original_data_encoded,
                "metadata": {
                    **snapshot,
                    "generatedHash": row.short_id,
                    "timestamp": _iso(row.created_at),
                },
                "analytics": {
                    "totalScans": total,
                    "lastScanned": _iso(last),
                    "createdAt": _iso(row.created_at),
                    "updatedAt": _iso(row.updated_at),
                },
            },
        }

    artifact = find_static_artifact(api_key.id, identifier)
    if artifact is None:
        raise NotFoundError(*QR_NOT_FOUND)

    modified = datetime.fromtimestamp(artifact.fs_path.stat().st_mtime, tz=timezone.utc)
    return {
        "type": "static",
        "qrCode": {
            "filePath": artifact.public_path,
            "downloadUrl": download_url(artifact.public_path, KIND_STATIC),
            "metadata": {
                "generatedHash": identifier,
                "format": artifact.fs_path.suffix.lstrip("."),
                "timestamp": _iso(modified),
            },
        },
    }


# ---------------------------------------------------------------------------
# ↪️ Redirect
# ---------------------------------------------------------------------------

def resolve_redirect(
    db: Session,
    short_id: str,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    country: Optional[str] = None,
) -> str:
    """
    Öffentlicher Lookup (ohne Key). Der Scan wird best effort gespeichert –
    ein Fehler dabei verhindert die Weiterleitung nicht.
    """
    row = db.query(DynamicQRCode).filter(DynamicQRCode.short_id == short_id).first()
    if row is None:
        raise NotFoundError(*QR_NOT_FOUND)

    target = row.target_url
    try:
        db.add(
            ScanEvent(
                dynamic_qr_code_id=row.id,
                ip_address=ip_address,
                user_agent=user_agent,
                geolocation={"country": country} if country else None,
            )
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(f"⚠️ Scan für {short_id} nicht gespeichert: {exc}")

    return target
