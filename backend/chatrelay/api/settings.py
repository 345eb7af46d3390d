"""API key settings endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from chatrelay.api.deps import get_settings_service
from chatrelay.services import SettingsService

router = APIRouter(prefix="/settings", tags=["settings"])


class SetApiKeyRequest(BaseModel):
    provider: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)


@router.get("/api-keys")
def list_api_keys(settings_service: SettingsService = Depends(get_settings_service)) -> dict[str, Any]:
    """Masked key status per provider."""
    return {provider_id: status.to_dict() for provider_id, status in settings_service.get_api_keys().items()}


@router.put("/api-keys")
def set_api_key(
    body: SetApiKeyRequest,
    settings_service: SettingsService = Depends(get_settings_service),
) -> dict[str, Any]:
    validation = settings_service.set_api_key(body.provider, body.key)
    return {"valid": validation.valid, "message": validation.message}


@router.delete("/api-keys/{provider_id}")
def delete_api_key(
    provider_id: str,
    settings_service: SettingsService = Depends(get_settings_service),
) -> dict[str, bool]:
    settings_service.delete_api_key(provider_id)
    return {"success": True}
