from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from database import get_db
from models.api_key import APIKey
from utils import qr_service
from utils.api_keys import find_by_token, is_usable, mask_presented_key
from utils.errors import AuthError
from utils.responses import format_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/qr", tags=["QR API"])


class CustomizationIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    size: Optional[int] = None
    format: Optional[str] = None
    foreground_color: Optional[str] = Field(default=None, alias="foregroundColor")
    background_color: Optional[str] = Field(default=None, alias="backgroundColor")
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    logo_scale: Optional[float] = Field(default=None, alias="logoScale")
    logo_margin: Optional[int] = Field(default=None, alias="logoMargin")
    logo_background_color: Optional[str] = Field(default=None, alias="logoBackgroundColor")
    quiet_zone: Optional[int] = Field(default=None, alias="quietZone")
    error_correction_level: Optional[str] = Field(default=None, alias="errorCorrectionLevel")

    def to_raw(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class StaticQRIn(CustomizationIn):
    data: Optional[str] = None


class DynamicQRIn(CustomizationIn):
    target_url: Optional[str] = Field(default=None, alias="targetUrl")


class UpdateTargetIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_target_url: Optional[str] = Field(default=None, alias="newTargetUrl")


class BulkQRIn(BaseModel):
    # Jobs bleiben roh, damit ein fehlerhafter Job nur übersprungen wird
    jobs: Optional[list[Any]] = None


def get_api_key(
    db: Session = Depends(get_db),
    x_api_key: Optional[str] = Header(default=None, alias="X-API-Key"),
) -> APIKey:
    if not x_api_key:
        logger.warning("API key missing in request header")
        raise AuthError("Authentication error", "API key missing")

    row = find_by_token(db, x_api_key)
    if row is None:
        logger.warning(f"Invalid API key provided: {mask_presented_key(x_api_key)}")
        raise AuthError("Authentication error", "Invalid API key")
    if not is_usable(row):
        logger.warning(f"Inactive or expired API key: {mask_presented_key(x_api_key)}")
        raise AuthError("Authentication error", "API key inactive or expired")
    return row


@router.post("/generate")
def generate_static_qr(
    payload: StaticQRIn,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.generate_static(db, api_key, payload.to_raw())
    return format_response(result, "QR code generated successfully")


@router.post("/dynamic/create", status_code=201)
def create_dynamic_qr(
    payload: DynamicQRIn,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.create_dynamic(db, api_key, payload.to_raw())
    return format_response(result, "Dynamic QR code created successfully")


@router.put("/dynamic/{short_id}/update")
def update_dynamic_qr(
    short_id: str,
    payload: UpdateTargetIn,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.update_dynamic_target(db, api_key, short_id, payload.new_target_url)
    return format_response(result, "Target URL updated successfully")


@router.get("/dynamic/{short_id}/analytics")
def dynamic_qr_analytics(
    short_id: str,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.get_dynamic_analytics(db, api_key, short_id)
    return format_response(result, "Analytics retrieved successfully")


@router.post("/bulk/generate")
def generate_bulk_qr(
    payload: BulkQRIn,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.generate_bulk(db, api_key, payload.jobs)
    return format_response(result, "Bulk QR codes generated successfully")


@router.get("/{qr_id}")
def get_qr(
    qr_id: str,
    db: Session = Depends(get_db),
    api_key: APIKey = Depends(get_api_key),
):
    result = qr_service.get_qr_code(db, api_key, qr_id)
    return format_response(result, "QR code retrieved successfully")
