# =============================================================================
# 🧠 QR-Codec – QR-Relay API
# -----------------------------------------------------------------------------
# Kapselt die QR-Matrix-Erzeugung (qrcode) und die Bildausgabe (Pillow / SVG).
# Reine Funktionen: Payload + Design-Parameter → Bild, kein Dateizugriff.
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from io import BytesIO
from typing import Optional
import logging

import qrcode
from qrcode.constants import ERROR_CORRECT_H, ERROR_CORRECT_L, ERROR_CORRECT_M, ERROR_CORRECT_Q
from qrcode.exceptions import DataOverflowError
from qrcode.image.pil import PilImage
from qrcode.image.svg import SvgPathImage
from PIL import Image

from utils.errors import EncodingError
from utils.qr_params import VisualParams

logger = logging.getLogger(__name__)

ERROR_LEVELS = {
    "L": ERROR_CORRECT_L,
    "M": ERROR_CORRECT_M,
    "Q": ERROR_CORRECT_Q,
    "H": ERROR_CORRECT_H,
}

BOX_SIZE = 10


@dataclass
class RenderedQR:
    """Ergebnis des Codecs: entweder Rasterbild (PIL) oder fertiges SVG."""
    kind: str                                  # "raster" | "svg"
    image: Optional[Image.Image] = None
    svg: Optional[bytes] = None

    @property
    def is_vector(self) -> bool:
        return self.kind == "svg"


# ---------------------------------------------------------------------------
# 🧩 QR-Matrix
# ---------------------------------------------------------------------------

def _build_matrix(payload: str, params: VisualParams) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_LEVELS[params.error_correction_level],
        box_size=BOX_SIZE,
        border=params.quiet_zone,
    )
    qr.add_data(payload)
    try:
        qr.make(fit=True)
    except (DataOverflowError, ValueError):
        # qrcode >= 8 meldet Überlauf als ValueError("Invalid version (was 41, ...)")
        raise EncodingError(
            "QR code encoding failed",
            f"Payload too long for error correction level {params.error_correction_level}",
        )
    return qr


def _svg_factory(fg: str, bg: str) -> type:
    # Pfad in Vordergrundfarbe, Hintergrund als Rechteck
    return type(
        "ColoredSvgPathImage",
        (SvgPathImage,),
        {
            "QR_PATH_STYLE": dict(SvgPathImage.QR_PATH_STYLE, fill=fg),
            "background": bg,
        },
    )


# ---------------------------------------------------------------------------
# 🎨 Rendern
# ---------------------------------------------------------------------------

def render_qr(payload: str, params: VisualParams, fmt: Optional[str] = None) -> RenderedQR:
    """
    Rendert `payload` mit den Design-Parametern.
    `fmt` überschreibt `params.format` (z. B. wenn SVG wegen Logo durch PNG ersetzt wird).
    """
    fmt = fmt or params.format
    qr = _build_matrix(payload, params)
    logger.debug(f"QR-Matrix: version={qr.version}, level={params.error_correction_level}")

    if fmt == "svg":
        svg_img = qr.make_image(image_factory=_svg_factory(params.foreground_color, params.background_color))
        buffer = BytesIO()
        svg_img.save(buffer)
        return RenderedQR(kind="svg", svg=buffer.getvalue())

    img = qr.make_image(
        image_factory=PilImage,
        fill_color=params.foreground_color,
        back_color=params.background_color,
    ).convert("RGB")
    img = img.resize((params.size, params.size), Image.Resampling.NEAREST)
    return RenderedQR(kind="raster", image=img)


def encode_raster(image: Image.Image, fmt: str) -> bytes:
    """Serialisiert ein Rasterbild als PNG oder JPEG."""
    buffer = BytesIO()
    if fmt == "jpeg":
        image.convert("RGB").save(buffer, format="JPEG", quality=95)
    else:
        image.save(buffer, format="PNG")
    return buffer.getvalue()
