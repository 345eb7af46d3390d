"""Anthropic Messages API adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from chatrelay.core import InvocationErrorKind, ProviderInvocationError
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

ANTHROPIC_VERSION = "2023-06-01"

_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
}


class AnthropicProvider(BaseProvider):
    """Adapter for POST /messages."""

    provider_id = "anthropic"
    display_name = "Anthropic"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            headers={"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    def _payload(self, request: ChatRequest, stream: bool) -> dict[str, Any]:
        system, turns = _split_system(request.messages)
        payload: dict[str, Any] = {
            "model": request.model,
            "messages": turns,
            "max_tokens": request.max_output_tokens,
            "temperature": request.temperature,
            "stream": stream,
        }
        if system:
            payload["system"] = system
        return payload

    async def chat_once(self, request: ChatRequest) -> InvocationResult:
        response = await send_request(
            self.client, "POST", "/messages", json=self._payload(request, stream=False)
        )
        raise_for_status(response)
        data = parse_json(response)

        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise malformed(body=data)
        text = "".join(
            block.get("text", "") for block in blocks if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = payload_dict(data.get("usage"), body=data)
        return InvocationResult(
            text=text,
            finish_reason=_finish_reason(data.get("stop_reason")),
            usage=Usage(
                input_tokens=int(usage.get("input_tokens") or 0),
                output_tokens=int(usage.get("output_tokens") or 0),
            ),
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[DeltaEvent]:
        input_tokens = 0
        output_tokens = 0
        finish_reason: str | None = None
        stopped = False

        async with open_stream(
            self.client, "POST", "/messages", json=self._payload(request, stream=True)
        ) as response:
            async for line in iter_lines(response):
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                event = parse_json_line(line[5:].strip())
                if not isinstance(event, dict):
                    raise malformed(body=line)

                event_type = event.get("type")
                if event_type == "message_start":
                    message = payload_dict(event.get("message"), body=line)
                    usage = payload_dict(message.get("usage"), body=line)
                    input_tokens = int(usage.get("input_tokens") or 0)
                elif event_type == "content_block_delta":
                    delta = payload_dict(event.get("delta"), body=line)
                    if delta.get("type") == "text_delta" and delta.get("text"):
                        if not isinstance(delta["text"], str):
                            raise malformed(body=line)
                        yield DeltaEvent.fragment(delta["text"])
                elif event_type == "message_delta":
                    stop_reason = payload_dict(event.get("delta"), body=line).get("stop_reason")
                    if stop_reason:
                        finish_reason = _finish_reason(stop_reason)
                    usage = payload_dict(event.get("usage"), body=line)
                    output_tokens = int(usage.get("output_tokens") or 0)
                elif event_type == "message_stop":
                    stopped = True
                    break
                elif event_type == "error":
                    error = payload_dict(event.get("error"), body=line)
                    raise ProviderInvocationError(
                        InvocationErrorKind.UPSTREAM_STATUS,
                        error.get("message") or "Provider reported a stream error",
                        details={"type": error.get("type")},
                    )

        if not stopped and finish_reason is None:
            raise malformed("Provider stream ended before completion")
        yield DeltaEvent.finish(
            finish_reason or "stop",
            Usage(input_tokens=input_tokens, output_tokens=output_tokens),
        )


def _finish_reason(stop_reason: Any) -> str:
    if not stop_reason:
        return "stop"
    if not isinstance(stop_reason, str):
        raise malformed(body=stop_reason)
    return _STOP_REASONS.get(stop_reason, stop_reason)


def _split_system(messages: list[ChatMessage]) -> tuple[str, list[dict[str, str]]]:
    """System turns become the top-level system prompt."""
    system_parts = [msg.content for msg in messages if msg.role == "system"]
    turns = [
        {"role": msg.role, "content": msg.content} for msg in messages if msg.role != "system"
    ]
    return "\n\n".join(system_parts), turns
