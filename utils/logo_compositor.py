# =============================================================================
# 🖼️ Logo-Compositor – QR-Relay API
# -----------------------------------------------------------------------------
# Lädt ein Logo per URL, skaliert es (Seitenverhältnis bleibt erhalten) und
# setzt es mittig auf den QR-Code, optional auf eine farbige Hintergrundplatte.
# =============================================================================

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from io import BytesIO
from typing import Optional
import logging

import httpx
from PIL import Image, ImageColor, ImageOps, UnidentifiedImageError

from config import LOGO_FETCH_TIMEOUT, LOGO_MAX_BYTES
from utils.errors import LogoError, LogoFetchError
from utils.qr_params import VisualParams

logger = logging.getLogger(__name__)


class LogoPolicy(str, Enum):
    REQUIRED = "required"        # Fehler bricht die Anfrage ab (statisch, einzeln)
    BEST_EFFORT = "best_effort"  # Fehler wird geloggt, QR ohne Logo (dynamisch, bulk)


@dataclass
class LogoOutcome:
    image: Image.Image
    embedded: bool
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# 🌐 Logo laden
# ---------------------------------------------------------------------------

def fetch_logo(
    url: str,
    timeout: float = LOGO_FETCH_TIMEOUT,
    client: Optional[httpx.Client] = None,
    max_bytes: int = LOGO_MAX_BYTES,
) -> bytes:
    """
    Lädt die Logo-Bytes. Timeout, Netzwerkfehler, Status != 2xx und zu große
    Dateien werden einheitlich als LogoFetchError gemeldet.
    """
    own_client = client is None
    http = client or httpx.Client(timeout=timeout, follow_redirects=True)
    try:
        with http.stream("GET", url, timeout=timeout) as response:
            if not response.is_success:
                raise LogoFetchError("Failed to fetch logo", f"Logo URL returned HTTP {response.status_code}")

            declared = response.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise LogoFetchError("Failed to fetch logo", f"Logo exceeds {max_bytes} bytes")

            chunks = []
            received = 0
            for chunk in response.iter_bytes():
                received += len(chunk)
                if received > max_bytes:
                    raise LogoFetchError("Failed to fetch logo", f"Logo exceeds {max_bytes} bytes")
                chunks.append(chunk)
            return b"".join(chunks)
    except httpx.TimeoutException:
        raise LogoFetchError("Failed to fetch logo", f"Timed out after {timeout}s")
    except httpx.HTTPError as exc:
        raise LogoFetchError("Failed to fetch logo", str(exc))
    finally:
        if own_client:
            http.close()


# ---------------------------------------------------------------------------
# 🎨 Einfügen
# ---------------------------------------------------------------------------

def composite_logo(
    base: Image.Image,
    logo_bytes: bytes,
    size: int,
    scale: float,
    margin: int,
    background_color: Optional[str] = None,
) -> Image.Image:
    """Setzt das Logo mittig auf `base` und liefert ein RGBA-Bild."""
    box = max(1, round(size * scale))
    try:
        logo = Image.open(BytesIO(logo_bytes))
        logo.load()
        logo = ImageOps.pad(logo.convert("RGBA"), (box, box), method=Image.Resampling.LANCZOS, color=(0, 0, 0, 0))
    except Image.DecompressionBombError as exc:
        raise LogoError("Failed to process logo", f"Logo dimensions too large: {exc}")
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise LogoError("Failed to process logo", f"Logo could not be decoded: {exc}")

    img = base.convert("RGBA")

    if background_color:
        plate_size = min(box + 2 * margin, img.width, img.height)
        plate = Image.new("RGBA", (plate_size, plate_size), ImageColor.getrgb(background_color) + (255,))
        plate_pos = (round((img.width - plate_size) / 2), round((img.height - plate_size) / 2))
        img.alpha_composite(plate, dest=plate_pos)

    pos = (round((img.width - box) / 2), round((img.height - box) / 2))
    img.alpha_composite(logo, dest=pos)
    return img


def apply_logo(
    base: Image.Image,
    params: VisualParams,
    policy: LogoPolicy,
    client: Optional[httpx.Client] = None,
) -> LogoOutcome:
    """
    Logo-Schritt der Pipeline. REQUIRED wirft weiter, BEST_EFFORT liefert
    das unveränderte Bild mit `embedded=False` und dem Grund.
    """
    if not params.has_logo:
        return LogoOutcome(image=base, embedded=False)

    try:
        logo_bytes = fetch_logo(params.logo_url, client=client)
        image = composite_logo(
            base,
            logo_bytes,
            size=params.size,
            scale=params.logo_scale,
            margin=params.logo_margin,
            background_color=params.logo_background_color,
        )
    except LogoError as exc:
        if policy is LogoPolicy.REQUIRED:
            raise
        logger.warning(f"⚠️ Logo übersprungen ({params.logo_url}): {exc.error or exc.message}")
        return LogoOutcome(image=base, embedded=False, reason=exc.error or exc.message)

    return LogoOutcome(image=image, embedded=True)
