# =============================================================================
# 💾 utils/qr_storage.py
# -----------------------------------------------------------------------------
# Ablage der gerenderten QR-Bilder im Dateisystem.
#
#   {DATA_DIR}/static/qrcode/{apiKeyId}/static/{hash}.{ext}
#   {DATA_DIR}/static/qrcode/{apiKeyId}/dynamic/{shortId}.{ext}
#   {DATA_DIR}/static/qrcode/{apiKeyId}/bulk/{bulkId}/{fileId}.{ext}
#
# Öffentlich erreichbar unter /data/static/qrcode/... (StaticFiles in main.py).
# =============================================================================

from __future__ import annotations

import logging
import os
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import config
from utils.errors import StorageError

logger = logging.getLogger(__name__)

ARTIFACT_ROOT = "static/qrcode"
KINDS = {"static", "dynamic", "bulk"}
KNOWN_EXTENSIONS = ("png", "jpeg", "svg")


@dataclass(frozen=True)
class StoredArtifact:
    fs_path: Path
    public_path: str


# ---------------------------------------------------------------------------
# 🔑 IDs
# ---------------------------------------------------------------------------

def new_short_id() -> str:
    return uuid.uuid4().hex[: config.SHORT_ID_LENGTH]


def new_batch_id() -> str:
    return uuid.uuid4().hex[:8]


def new_file_id() -> str:
    return uuid.uuid4().hex[:8]


# ---------------------------------------------------------------------------
# 📁 Pfade
# ---------------------------------------------------------------------------

def _relative_dir(kind: str, api_key_id: int, batch_id: Optional[str] = None) -> str:
    if kind not in KINDS:
        raise ValueError(f"Unknown artifact kind: {kind}")
    if kind == "bulk":
        if not batch_id:
            raise ValueError("bulk artifacts need a batch id")
        return f"{ARTIFACT_ROOT}/{api_key_id}/bulk/{batch_id}"
    return f"{ARTIFACT_ROOT}/{api_key_id}/{kind}"


def public_to_fs_path(public_path: str) -> Path:
    """/data/static/qrcode/... → {DATA_DIR}/static/qrcode/..."""
    prefix = config.DATA_URL_PREFIX.rstrip("/") + "/"
    if not public_path.startswith(prefix):
        raise ValueError(f"Not an artifact path: {public_path}")
    return config.DATA_DIR / public_path[len(prefix):]


def download_url(public_path: str, kind: str) -> str:
    """Download-Link mit Tracking-Parametern (nur kosmetisch, nicht für Lookups)."""
    return f"{config.API_BASE_URL}{public_path}?t={int(time.time() * 1000)}&id={uuid.uuid4().hex[:8]}&type={kind}"


# ---------------------------------------------------------------------------
# 💾 Schreiben / Löschen
# ---------------------------------------------------------------------------

def write_artifact(
    kind: str,
    api_key_id: int,
    filename: str,
    content: bytes,
    batch_id: Optional[str] = None,
) -> StoredArtifact:
    """
    Schreibt erst in eine temporäre Datei im Zielordner und benennt sie dann
    atomar um. Eine halb geschriebene Datei ist nie unter dem Zielnamen sichtbar.
    """
    rel_dir = _relative_dir(kind, api_key_id, batch_id)
    target_dir = config.DATA_DIR / rel_dir
    target = target_dir / filename
    tmp_name = None
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=target_dir, prefix=".tmp-", suffix=f"-{filename}")
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        os.replace(tmp_name, target)
        tmp_name = None
    except OSError as exc:
        logger.error(f"❌ Schreiben von {target} fehlgeschlagen: {exc}")
        raise StorageError("Failed to save QR code", str(exc))
    finally:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    public_path = f"{config.DATA_URL_PREFIX}/{rel_dir}/{filename}"
    logger.debug(f"💾 Artefakt gespeichert: {target}")
    return StoredArtifact(fs_path=target, public_path=public_path)


def remove_artifact(artifact: Optional[StoredArtifact]) -> None:
    if artifact is None:
        return
    try:
        artifact.fs_path.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning(f"⚠️ Artefakt {artifact.fs_path} konnte nicht gelöscht werden: {exc}")


def find_static_artifact(api_key_id: int, digest: str) -> Optional[StoredArtifact]:
    """Sucht ein statisches Artefakt per Hash (png, jpeg, svg)."""
    if not digest or not digest.isalnum():
        return None
    rel_dir = _relative_dir("static", api_key_id)
    for ext in KNOWN_EXTENSIONS:
        candidate = config.DATA_DIR / rel_dir / f"{digest}.{ext}"
        if candidate.is_file():
            return StoredArtifact(
                fs_path=candidate,
                public_path=f"{config.DATA_URL_PREFIX}/{rel_dir}/{candidate.name}",
            )
    return None
