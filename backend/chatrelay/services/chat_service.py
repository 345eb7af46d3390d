"""Chat orchestration: resolve a provider handle and invoke it."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

import httpx

from chatrelay.core import (
    AppError,
    ConfigNotFoundError,
    EmptyMessagesError,
    InvocationErrorKind,
    MissingCredentialsError,
    ProviderInvocationError,
    ValidationError,
    get_logger,
)
from chatrelay.core.metrics import metrics
from chatrelay.providers.base import (
    ROLES,
    ChatMessage,
    InvocationResult,
    ModelHandle,
    coerce_message,
)
from chatrelay.services.config_service import ConfigService
from chatrelay.services.provider_service import ProviderService
from chatrelay.services.streaming import DeltaStream

logger = get_logger(__name__)

DEFAULT_MAX_OUTPUT_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7


def to_invocation_error(exc: Exception) -> Exception:
    """
    Wrap an invocation failure as ProviderInvocationError.

    Errors that are not invocation failures (programming errors) are
    returned unchanged so they propagate as they are.
    """
    if isinstance(exc, ProviderInvocationError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return ProviderInvocationError(
            InvocationErrorKind.UPSTREAM_STATUS,
            f"Provider returned HTTP {exc.response.status_code}",
            details={"status": exc.response.status_code},
        )
    if isinstance(exc, httpx.HTTPError):
        return ProviderInvocationError(
            InvocationErrorKind.NETWORK,
            "Provider unreachable",
            details={"reason": str(exc) or exc.__class__.__name__},
        )
    if isinstance(exc, (AttributeError, KeyError, IndexError, TypeError, ValueError)):
        return ProviderInvocationError(
            InvocationErrorKind.MALFORMED_RESPONSE,
            "Provider returned invalid response",
            details={"reason": str(exc)},
        )
    return exc


class ChatService:
    """
    Stateless chat orchestrator.

    Holds references to its collaborators only; concurrent calls share no
    mutable state. No retries are performed here.
    """

    def __init__(
        self,
        provider_service: ProviderService,
        config_service: ConfigService | None = None,
        *,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        stream_buffer_size: int = 64,
    ):
        self.provider_service = provider_service
        self.config_service = config_service
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.stream_buffer_size = stream_buffer_size

    @staticmethod
    def _normalize(messages: Iterable[ChatMessage | Mapping[str, Any]]) -> list[ChatMessage]:
        normalized: list[ChatMessage] = []
        for index, raw in enumerate(messages):
            try:
                message = coerce_message(raw)  # type: ignore[arg-type]
            except (KeyError, TypeError) as exc:
                raise ValidationError(
                    "Each message needs a role and content", details={"index": index}
                ) from exc
            if message.role not in ROLES or not isinstance(message.content, str):
                raise ValidationError(
                    f"Invalid message role: {message.role}",
                    details={"index": index, "allowed": sorted(ROLES)},
                )
            normalized.append(message)
        if not normalized:
            raise EmptyMessagesError()
        return normalized

    def _resolve(self, provider_id: str | None, model_id: str | None) -> ModelHandle:
        if provider_id is None:
            available = self.provider_service.get_available_providers()
            if not available:
                raise MissingCredentialsError("No provider has credentials configured")
            provider_id = available[0]

        if model_id is None:
            if self.config_service is None:
                raise ConfigNotFoundError(provider_id)
            model_id = self.config_service.get_provider_config(provider_id).default_model

        return self.provider_service.get_provider_model(provider_id, model_id)

    def _params(self, max_output_tokens: int | None, temperature: float | None) -> dict[str, Any]:
        return {
            "max_output_tokens": max_output_tokens if max_output_tokens is not None else self.max_output_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
        }

    async def process_message(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        provider_id: str | None = None,
        model_id: str | None = None,
        *,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ) -> InvocationResult:
        """
        Invoke the model once with the full message list.

        Raises:
            EmptyMessagesError: before any provider work when messages is empty.
            UnknownProviderError / MissingCredentialsError: from resolution.
            ProviderInvocationError: the invocation itself failed.
        """
        chatlog = self._normalize(messages)
        handle = self._resolve(provider_id, model_id)
        request = handle.build_request(chatlog, **self._params(max_output_tokens, temperature))

        metrics.increment("provider_invocations_total")
        try:
            result = await handle.provider.chat_once(request)
        except AppError:
            metrics.increment("provider_invocation_errors_total")
            raise
        except Exception as exc:
            metrics.increment("provider_invocation_errors_total")
            wrapped = to_invocation_error(exc)
            if wrapped is exc:
                raise
            raise wrapped from exc

        logger.info(
            "Provider invocation completed",
            data={
                "provider": handle.provider_id,
                "model": handle.model_id,
                "finish_reason": result.finish_reason,
                "usage": result.usage.to_dict(),
            },
        )
        return replace(
            result,
            provider_id=handle.provider_id,
            provider_name=handle.display_name,
            model_id=handle.model_id,
        )

    async def stream_message(
        self,
        messages: Iterable[ChatMessage | Mapping[str, Any]],
        provider_id: str | None = None,
        model_id: str | None = None,
        *,
        max_output_tokens: int | None = None,
        temperature: float | None = None,
    ) -> DeltaStream:
        """
        Invoke the model in streaming mode.

        The returned stream is already open: a failure before the first
        event is raised from this call. Later failures end the stream with
        a failure event.
        """
        chatlog = self._normalize(messages)
        handle = self._resolve(provider_id, model_id)
        request = handle.build_request(chatlog, **self._params(max_output_tokens, temperature))

        metrics.increment("provider_invocations_total")
        stream = DeltaStream(
            handle.provider.chat_stream(request),
            buffer_size=self.stream_buffer_size,
            map_error=to_invocation_error,
            provider_id=handle.provider_id,
            model_id=handle.model_id,
        )
        try:
            await stream.open()
        except AppError:
            metrics.increment("provider_invocation_errors_total")
            raise

        logger.info(
            "Provider stream opened",
            data={"provider": handle.provider_id, "model": handle.model_id, "stream_id": stream.stream_id},
        )
        return stream
