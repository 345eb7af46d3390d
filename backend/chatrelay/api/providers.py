"""Provider and model catalog read-only endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from chatrelay.api.deps import get_config_service, get_provider_service
from chatrelay.core import UnknownProviderError
from chatrelay.services import ConfigService, ProviderService

router = APIRouter(tags=["providers"])


@router.get("/providers")
async def list_providers(
    provider_service: ProviderService = Depends(get_provider_service),
    config_service: ConfigService = Depends(get_config_service),
) -> dict[str, Any]:
    """Every catalogued provider with its credential status."""
    validations = provider_service.validate_all_providers()
    providers = []
    for provider_id, entry in config_service.get_all_provider_configs().items():
        validation = validations.get(provider_id)
        providers.append(
            {
                "id": provider_id,
                "name": entry.display_name,
                "available": bool(validation and validation.valid),
                "message": validation.message if validation else "Unknown provider",
                "default_model": entry.default_model,
            }
        )
    return {
        "providers": providers,
        "available": provider_service.get_available_providers(),
    }


@router.get("/providers/{provider_id}/models")
async def list_provider_models(
    provider_id: str,
    provider_service: ProviderService = Depends(get_provider_service),
    config_service: ConfigService = Depends(get_config_service),
) -> dict[str, Any]:
    """Catalog entry for one provider."""
    if not provider_service.validate_provider(provider_id):
        raise UnknownProviderError(provider_id)
    return config_service.get_provider_config(provider_id).to_dict()


@router.get("/models")
async def list_all_models(config_service: ConfigService = Depends(get_config_service)) -> list[dict[str, str]]:
    """Flattened model list with provider identifiers."""
    return [
        {"id": model, "provider": provider_id}
        for provider_id, entry in config_service.get_all_provider_configs().items()
        for model in entry.models
    ]
