# =============================================================================
# 📨 utils/responses.py
# -----------------------------------------------------------------------------
# Einheitlicher Antwort-Umschlag aller API-Routen.
#   Erfolg: {"success": true,  "message": ..., "data": ...}
#   Fehler: {"success": false, "message": ..., "error": ...}  (siehe main.py)
# =============================================================================

from typing import Any, Dict, Optional


def format_response(data: Any, message: str) -> Dict[str, Any]:
    return {"success": True, "message": message, "data": data}


def format_error(message: str, error: Optional[str] = None) -> Dict[str, Any]:
    return {"success": False, "message": message, "error": error or message}
