"""Application services."""

from chatrelay.services.chat_service import ChatService
from chatrelay.services.config_service import ConfigService, ModelCatalogEntry, load_model_catalog
from chatrelay.services.conversation_service import ConversationService
from chatrelay.services.provider_service import ApiKeyValidation, ProviderService
from chatrelay.services.settings_service import ApiKeyStatus, SettingsService, mask_api_key
from chatrelay.services.streaming import DeltaStream

__all__ = [
    "ApiKeyStatus",
    "ApiKeyValidation",
    "ChatService",
    "ConfigService",
    "ConversationService",
    "DeltaStream",
    "ModelCatalogEntry",
    "ProviderService",
    "SettingsService",
    "load_model_catalog",
    "mask_api_key",
]
