"""
utils/qr_params.py
────────────────────────────────────────────
Normalisiert und validiert die Design-Parameter einer QR-Anfrage.

- füllt Standardwerte auf (size=256, png, #000000/#FFFFFF, ...)
- prüft Pflichtfelder je Anfrageart (data / targetUrl)
- erzeugt für statische Codes einen stabilen Hash über die
  kanonischen Parameter (Dateiname + Cache-Schlüssel)
────────────────────────────────────────────
"""

from __future__ import annotations

import hashlib
import json
import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

from utils.errors import ValidationError

# ─────────────────────────────────────────────
# 🎨 STANDARDWERTE
# ─────────────────────────────────────────────
QR_DEFAULTS: Dict[str, Any] = {
    "size": 256,
    "format": "png",
    "foreground_color": "#000000",
    "background_color": "#FFFFFF",
    "logo_url": None,
    "logo_scale": 0.2,
    "logo_margin": 4,
    "logo_background_color": None,
    "quiet_zone": 4,
    "error_correction_level": "M",
}

# Wire-Format (camelCase) → interne Feldnamen
WIRE_FIELDS: Dict[str, str] = {
    "size": "size",
    "format": "format",
    "foregroundColor": "foreground_color",
    "backgroundColor": "background_color",
    "logoUrl": "logo_url",
    "logoScale": "logo_scale",
    "logoMargin": "logo_margin",
    "logoBackgroundColor": "logo_background_color",
    "quietZone": "quiet_zone",
    "errorCorrectionLevel": "error_correction_level",
}

FORMATS = {"png", "jpeg", "svg"}
FORMAT_ALIASES = {"jpg": "jpeg"}
ERROR_CORRECTION_LEVELS = {"L", "M", "Q", "H"}

SIZE_RANGE = (32, 4096)
QUIET_ZONE_RANGE = (0, 32)
LOGO_MARGIN_RANGE = (0, 64)

_HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

KIND_STATIC = "static"
KIND_DYNAMIC = "dynamic"
KIND_BULK = "bulk"


@dataclass(frozen=True)
class VisualParams:
    size: int = 256
    format: str = "png"
    foreground_color: str = "#000000"
    background_color: str = "#FFFFFF"
    logo_url: Optional[str] = None
    logo_scale: float = 0.2
    logo_margin: int = 4
    logo_background_color: Optional[str] = None
    quiet_zone: int = 4
    error_correction_level: str = "M"

    @property
    def has_logo(self) -> bool:
        return bool(self.logo_url)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_wire(self) -> Dict[str, Any]:
        """Parameter im camelCase-Format der API (für Antworten & Snapshots)."""
        values = self.as_dict()
        return {wire: values[field] for wire, field in WIRE_FIELDS.items()}


@dataclass(frozen=True)
class ResolvedRequest:
    kind: str
    payload: str
    params: VisualParams


# ─────────────────────────────────────────────
# 🔍 Einzelprüfungen
# ─────────────────────────────────────────────

def is_valid_url(value: Any) -> bool:
    """Absolute http(s)-URL mit Host."""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    return parts.scheme.lower() in {"http", "https"} and bool(parts.netloc)


def _as_int(name: str, value: Any, bounds: Tuple[int, int]) -> int:
    if isinstance(value, bool):
        raise ValidationError("Invalid customization", f"{name} must be an integer")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationError("Invalid customization", f"{name} must be an integer")
    low, high = bounds
    if not low <= value <= high:
        raise ValidationError("Invalid customization", f"{name} must be between {low} and {high}")
    return value


def _as_color(name: str, value: Any) -> str:
    if not isinstance(value, str) or not _HEX_COLOR.match(value.strip()):
        raise ValidationError("Invalid customization", f"{name} must be a hex color like #1A2B3C")
    value = value.strip().upper()
    if len(value) == 4:
        value = "#" + "".join(ch * 2 for ch in value[1:])
    return value


def _as_scale(value: Any) -> float:
    if isinstance(value, bool):
        raise ValidationError("Invalid customization", "logoScale must be a number")
    try:
        scale = float(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid customization", "logoScale must be a number")
    if not 0 < scale <= 1:
        raise ValidationError("Invalid customization", "logoScale must be greater than 0 and at most 1")
    return scale


def _as_format(value: Any) -> str:
    fmt = str(value or "").strip().lower()
    fmt = FORMAT_ALIASES.get(fmt, fmt)
    if fmt not in FORMATS:
        raise ValidationError("Invalid customization", "format must be one of png, jpeg, svg")
    return fmt


def _as_level(value: Any) -> str:
    level = str(value or "").strip().upper()
    if level not in ERROR_CORRECTION_LEVELS:
        raise ValidationError("Invalid customization", "errorCorrectionLevel must be one of L, M, Q, H")
    return level


# ─────────────────────────────────────────────
# 🧩 Hauptfunktionen
# ─────────────────────────────────────────────

def resolve_params(raw: Optional[Dict[str, Any]]) -> VisualParams:
    """
    Wendet Standardwerte an und prüft alle Design-Parameter.
    Unbekannte Schlüssel werden ignoriert, `None` zählt als "nicht gesetzt".
    """
    raw = raw or {}
    values: Dict[str, Any] = dict(QR_DEFAULTS)
    for wire, field in WIRE_FIELDS.items():
        if raw.get(wire) is not None:
            values[field] = raw[wire]

    logo_url = values["logo_url"]
    if logo_url is not None:
        logo_url = str(logo_url).strip() or None
    if logo_url is not None and not is_valid_url(logo_url):
        raise ValidationError("Invalid customization", "logoUrl must be an absolute http(s) URL")

    logo_bg = values["logo_background_color"]
    return VisualParams(
        size=_as_int("size", values["size"], SIZE_RANGE),
        format=_as_format(values["format"]),
        foreground_color=_as_color("foregroundColor", values["foreground_color"]),
        background_color=_as_color("backgroundColor", values["background_color"]),
        logo_url=logo_url,
        logo_scale=_as_scale(values["logo_scale"]),
        logo_margin=_as_int("logoMargin", values["logo_margin"], LOGO_MARGIN_RANGE),
        logo_background_color=_as_color("logoBackgroundColor", logo_bg) if logo_bg else None,
        quiet_zone=_as_int("quietZone", values["quiet_zone"], QUIET_ZONE_RANGE),
        error_correction_level=_as_level(values["error_correction_level"]),
    )


def resolve_request(raw: Any, kind: str) -> ResolvedRequest:
    """
    Prüft den Diskriminator der Anfrage (data bzw. targetUrl) und liefert
    Payload + kanonische Parameter.
    """
    if not isinstance(raw, dict):
        raise ValidationError("Invalid request", "Request must be a JSON object")

    if kind == KIND_DYNAMIC:
        target = raw.get("targetUrl")
        if target is None or (isinstance(target, str) and not target.strip()):
            raise ValidationError("Missing required field", "targetUrl is required for dynamic QR codes")
        if not is_valid_url(target):
            raise ValidationError("Invalid URL format", "The provided targetUrl is not a valid URL")
        payload = target.strip()
    else:
        data = raw.get("data")
        if not isinstance(data, str) or not data:
            raise ValidationError("Missing required field", '"data" is required')
        payload = data

    return ResolvedRequest(kind=kind, payload=payload, params=resolve_params(raw))


def canonical_hash(payload: str, params: VisualParams) -> str:
    """
    MD5 über die kanonische Darstellung (sortierte Schlüssel) –
    unabhängig von der Reihenfolge im Request.
    """
    body = {"data": payload, **params.as_dict()}
    serialized = json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(serialized.encode("utf-8")).hexdigest()


def output_format(params: VisualParams) -> Tuple[str, bool]:
    """
    Liefert (Ausgabeformat, ersetzt?).
    SVG + Logo → PNG, weil das Logo per Pixel-Blending eingesetzt wird.
    """
    if params.format == "svg" and params.has_logo:
        return "png", True
    return params.format, False


def file_extension(fmt: str) -> str:
    return {"png": "png", "jpeg": "jpeg", "svg": "svg"}[fmt]


def media_type(fmt: str) -> str:
    return {"png": "image/png", "jpeg": "image/jpeg", "svg": "image/svg+xml"}[fmt]
