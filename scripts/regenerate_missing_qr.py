#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Script: regenerate_missing_qr.py
Project: QR-Relay API
Description:
    Prüft alle dynamischen QR-Codes in der Datenbank und erzeugt fehlende
    Bilddateien neu. Kodiert wird immer `original_data_encoded`
    ({base}/r/{shortId}) mit den gespeicherten Design-Parametern, daher ist
    das neue Bild gleichwertig zum ursprünglichen. Logos: best effort.
"""

import logging
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Dict, List, Literal, Tuple

# ─────────────────────────────────────────────
# 🧩 Projektpfad einbinden
# ─────────────────────────────────────────────
BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BASE_DIR not in sys.path:
    sys.path.append(BASE_DIR)

# ─────────────────────────────────────────────
# 📦 Interne Importe
# ─────────────────────────────────────────────
from sqlalchemy.orm import Session  # noqa: E402

from database import SessionLocal  # noqa: E402
from models.dynamic_qr import DynamicQRCode  # noqa: E402
from utils.errors import QRServiceError  # noqa: E402
from utils.logo_compositor import LogoPolicy  # noqa: E402
from utils.qr_params import file_extension, output_format, resolve_params  # noqa: E402
from utils.qr_service import render_artifact  # noqa: E402
from utils.qr_storage import public_to_fs_path, write_artifact  # noqa: E402

logger = logging.getLogger("regenerate_missing_qr")

Status = Literal["skip", "regen", "error"]


@dataclass
class RegenerationReport:
    total: int = 0
    regenerated: int = 0
    skipped: int = 0
    errors: List[Tuple[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class _Job:
    short_id: str
    api_key_id: int
    encoded: str
    image_path: str
    snapshot: Dict


# ─────────────────────────────────────────────
# 🔄 Regeneration pro QR-Eintrag
# ─────────────────────────────────────────────
def regenerate_single_qr(job: _Job) -> Tuple[Status, str]:
    """
    Rückgabe: (Status, shortId)
        "skip"  → Datei existiert bereits
        "regen" → Datei neu generiert
        "error" → Fehler beim Erstellen
    """
    try:
        params = resolve_params(job.snapshot)
        fmt, _ = output_format(params)
        filename = f"{job.short_id}.{file_extension(fmt)}"
        if job.image_path and public_to_fs_path(job.image_path).is_file():
            return "skip", job.short_id

        content, _ = render_artifact(job.encoded, params, fmt, LogoPolicy.BEST_EFFORT)
        write_artifact("dynamic", job.api_key_id, filename, content)
        logger.info(f"✅ Neu erstellt: {job.short_id}")
        return "regen", job.short_id
    except (QRServiceError, ValueError) as exc:
        logger.error(f"❌ Fehler bei {job.short_id}: {exc}")
        return "error", job.short_id


# ─────────────────────────────────────────────
# 🔄 Hauptfunktion (mit ThreadPool)
# ─────────────────────────────────────────────
def regenerate_missing(db: Session, max_workers: int = 4) -> RegenerationReport:
    """Überprüft die Datenbank und regeneriert alle fehlenden QR-Bilder."""
    start_time = time.time()
    rows = db.query(DynamicQRCode).all()
    jobs = [
        _Job(
            short_id=row.short_id,
            api_key_id=row.api_key_id,
            encoded=row.original_data_encoded,
            image_path=row.image_path or "",
            snapshot=dict(row.customization_params or {}),
        )
        for row in rows
    ]
    report = RegenerationReport(total=len(jobs))
    logger.info(f"🔍 {report.total} dynamische QR-Codes gefunden – Überprüfung gestartet...")

    # Rendern & Schreiben ohne Session → parallel möglich
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(regenerate_single_qr, job) for job in jobs]
        for future in as_completed(futures):
            status, short_id = future.result()
            if status == "regen":
                report.regenerated += 1
            elif status == "skip":
                report.skipped += 1
            else:
                report.errors.append((short_id, "regeneration failed"))

    logger.info(
        f"✅ Fertig: {report.regenerated} neu, {report.skipped} übersprungen, "
        f"{len(report.errors)} Fehler ({time.time() - start_time:.2f}s)"
    )
    return report


# ─────────────────────────────────────────────
# 🚀 Main-Ausführung
# ─────────────────────────────────────────────
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s")
    session = SessionLocal()
    try:
        result = regenerate_missing(session, max_workers=6)
    finally:
        session.close()
    sys.exit(1 if result.errors else 0)
