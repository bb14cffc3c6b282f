# =============================================================================
# ↪️ Öffentliche Weiterleitung dynamischer QR-Codes
# -----------------------------------------------------------------------------
#       GET /r/{short_id}  →  302 auf die aktuelle Ziel-URL
#
# Kein API-Key nötig. Jeder Aufruf wird (best effort) als Scan gespeichert.
# =============================================================================

from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from database import get_db
from utils.qr_service import resolve_redirect

router = APIRouter(tags=["QR-Redirect"])


def _client_ip(request: Request) -> Optional[str]:
    """Erste Adresse aus X-Forwarded-For, sonst die Gegenstelle."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None


@router.get("/r/{short_id}")
def redirect_dynamic(short_id: str, request: Request, db: Session = Depends(get_db)):
    target = resolve_redirect(
        db,
        short_id,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        country=request.headers.get("x-country"),
    )
    return RedirectResponse(url=target, status_code=302)
