"""Provider interfaces and adapters."""

from chatrelay.providers.anthropic import AnthropicProvider
from chatrelay.providers.base import (
    BaseProvider,
    ChatMessage,
    ChatRequest,
    DeltaEvent,
    InvocationResult,
    ModelHandle,
    Usage,
)
from chatrelay.providers.google import GoogleProvider
from chatrelay.providers.metadata import (
    PROVIDER_METADATA,
    SUPPORTED_PROVIDERS,
    ProviderMetadata,
    get_provider_display_name,
    get_provider_env_var,
    is_valid_provider,
)
from chatrelay.providers.openai_compat import OpenAICompatProvider
from chatrelay.providers.registry import ADAPTER_FACTORIES, ProviderRegistry

__all__ = [
    "ADAPTER_FACTORIES",
    "AnthropicProvider",
    "BaseProvider",
    "ChatMessage",
    "ChatRequest",
    "DeltaEvent",
    "GoogleProvider",
    "InvocationResult",
    "ModelHandle",
    "OpenAICompatProvider",
    "PROVIDER_METADATA",
    "ProviderMetadata",
    "ProviderRegistry",
    "SUPPORTED_PROVIDERS",
    "Usage",
    "get_provider_display_name",
    "get_provider_env_var",
    "is_valid_provider",
]
