# =============================================================================
# 📦 models/__init__.py
# -----------------------------------------------------------------------------
# Minimal & korrekt für Alembic
# =============================================================================

from .api_key import APIKey
from .dynamic_qr import DynamicQRCode
from .scan_event import ScanEvent

__all__ = [
    "APIKey",
    "DynamicQRCode",
    "ScanEvent",
]
