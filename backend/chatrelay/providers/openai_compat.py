"""OpenAI-compatible chat completions adapter (OpenAI, DeepSeek, OpenRouter)."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from chatrelay.core import get_logger
from chatrelay.providers.base import (
    BaseProvider,
    ChatMessage,
    ChatRequest,
    DeltaEvent,
    InvocationResult,
    Usage,
)
from chatrelay.providers.http_client import (
    create_http_client,
    iter_lines,
    malformed,
    open_stream,
    parse_json,
    parse_json_line,
    payload_dict,
    payload_list,
    raise_for_status,
    send_request,
)

logger = get_logger(__name__)


class OpenAICompatProvider(BaseProvider):
    """Adapter for any endpoint exposing /chat/completions."""

    def __init__(
        self,
        *,
        provider_id: str,
        display_name: str,
        base_url: str,
        api_key: str,
        timeout: int,
        transport: httpx.AsyncBaseTransport | None = None,
        extra_headers: dict[str, str] | None = None,
    ):
        self.provider_id = provider_id
        self.display_name = display_name
        headers = {"Authorization": f"Bearer {api_key}"}
        if extra_headers:
            headers.update(extra_headers)
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": _format_messages(request.messages),
            "max_tokens": request.max_output_tokens,
            "temperature": request.temperature,
            "stream": stream,
        }
        if stream:
            payload["stream_options"] = {"include_usage": True}
        return payload

    async def chat_once(self, request: ChatRequest) -> InvocationResult:
        """Send a single chat request (non-streaming)."""
        response = await send_request(
            self.client,
            "POST",
            "/chat/completions",
            json=self._payload(request, stream=False),
        )
        raise_for_status(response)
        data = parse_json(response)

        if not isinstance(data, dict):
            raise malformed(body=data)
        choices = payload_list(data.get("choices"), body=data)
        if not choices or not isinstance(choices[0], dict):
            raise malformed(body=data)
        choice = choices[0]
        text = payload_dict(choice.get("message"), body=data).get("content")
        if not isinstance(text, str):
            raise malformed(body=data)

        return InvocationResult(
            text=text,
            finish_reason=_finish_reason(choice.get("finish_reason")) or "stop",
            usage=_usage(data.get("usage")),
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[DeltaEvent]:
        """Stream chat responses from server-sent events."""
        finish_reason: str | None = None
        usage = Usage()
        done = False

        async with open_stream(
            self.client,
            "POST",
            "/chat/completions",
            json=self._payload(request, stream=True),
        ) as response:
            async for line in iter_lines(response):
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                data = line[5:].strip()
                if data == "[DONE]":
                    done = True
                    break
                chunk = parse_json_line(data)
                if not isinstance(chunk, dict):
                    raise malformed(body=data)
                if chunk.get("usage"):
                    usage = _usage(chunk["usage"])
                for choice in payload_list(chunk.get("choices"), body=data):
                    if not isinstance(choice, dict):
                        raise malformed(body=data)
                    content = payload_dict(choice.get("delta"), body=data).get("content")
                    if content and not isinstance(content, str):
                        raise malformed(body=data)
                    if content:
                        yield DeltaEvent.fragment(content)
                    if choice.get("finish_reason"):
                        finish_reason = _finish_reason(choice["finish_reason"])

        if not done and finish_reason is None:
            raise malformed("Provider stream ended before completion")
        yield DeltaEvent.finish(finish_reason or "stop", usage)


def _finish_reason(raw: Any) -> str | None:
    if raw is not None and not isinstance(raw, str):
        raise malformed(body=raw)
    return raw


def _usage(raw: Any) -> Usage:
    if not isinstance(raw, dict):
        return Usage()
    return Usage(
        input_tokens=int(raw.get("prompt_tokens") or 0),
        output_tokens=int(raw.get("completion_tokens") or 0),
    )


def _format_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Convert ChatMessage objects to the chat completions shape."""
    return [{"role": msg.role, "content": msg.content} for msg in messages]
