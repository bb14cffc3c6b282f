# =============================================================================
# 🚨 utils/errors.py
# -----------------------------------------------------------------------------
# Fehlerklassen der QR-Pipeline. Jede Klasse trägt ihren HTTP-Statuscode,
# main.py übersetzt sie in den einheitlichen Fehler-Umschlag
#   {"success": false, "message": ..., "error": ...}
# =============================================================================

from __future__ import annotations

from typing import Optional


class QRServiceError(Exception):
    status_code = 500
    default_message = "QR service error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None) -> None:
        self.message = message or self.default_message
        self.error = error or self.message
        super().__init__(self.error)


class ValidationError(QRServiceError):
    status_code = 400
    default_message = "Invalid request"


class AuthError(QRServiceError):
    status_code = 401
    default_message = "Authentication error"


class NotFoundError(QRServiceError):
    status_code = 404
    default_message = "Not found"


class QuotaExceededError(QRServiceError):
    status_code = 429
    default_message = "Usage limit exceeded"


class EncodingError(QRServiceError):
    """Payload passt bei der gewählten Fehlerkorrektur nicht in die QR-Matrix."""

    status_code = 400
    default_message = "Failed to encode QR code"


class LogoError(QRServiceError):
    """Logo konnte nicht gelesen oder eingebettet werden."""

    status_code = 500
    default_message = "Failed to embed logo"


class LogoFetchError(LogoError):
    """Logo-URL nicht erreichbar (Netzwerk, Timeout, Status != 2xx, zu groß)."""

    status_code = 502
    default_message = "Failed to fetch logo"


class StorageError(QRServiceError):
    status_code = 500
    default_message = "Storage failure"
