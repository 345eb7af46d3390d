"""Google Gemini generateContent adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

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

_FINISH_REASONS = {
    "STOP": "stop",
    "MAX_TOKENS": "length",
    "SAFETY": "content_filter",
    "RECITATION": "content_filter",
}


class GoogleProvider(BaseProvider):
    """Adapter for models/{model}:generateContent and its SSE variant."""

    provider_id = "google"
    display_name = "Google"

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
            headers={"x-goog-api-key": api_key},
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _payload(request: ChatRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": _format_contents(request.messages),
            "generationConfig": {
                "maxOutputTokens": request.max_output_tokens,
                "temperature": request.temperature,
            },
        }
        system = [msg.content for msg in request.messages if msg.role == "system"]
        if system:
            payload["systemInstruction"] = {"parts": [{"text": text} for text in system]}
        return payload

    async def chat_once(self, request: ChatRequest) -> InvocationResult:
        response = await send_request(
            self.client,
            "POST",
            f"/models/{request.model}:generateContent",
            json=self._payload(request),
        )
        raise_for_status(response)
        data = parse_json(response)
        if not isinstance(data, dict):
            raise malformed(body=data)

        candidates = payload_list(data.get("candidates"), body=data)
        if not candidates or not isinstance(candidates[0], dict):
            raise malformed(body=data)
        candidate = candidates[0]
        return InvocationResult(
            text=_candidate_text(candidate),
            finish_reason=_finish_reason(candidate.get("finishReason")),
            usage=_usage(data.get("usageMetadata")),
        )

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[DeltaEvent]:
        finish_reason: str | None = None
        usage = Usage()

        async with open_stream(
            self.client,
            "POST",
            f"/models/{request.model}:streamGenerateContent",
            params={"alt": "sse"},
            json=self._payload(request),
        ) as response:
            async for line in iter_lines(response):
                line = line.strip()
                if not line.startswith("data:"):
                    continue
                chunk = parse_json_line(line[5:].strip())
                if not isinstance(chunk, dict):
                    raise malformed(body=line)
                if chunk.get("usageMetadata"):
                    usage = _usage(chunk["usageMetadata"])
                for candidate in payload_list(chunk.get("candidates"), body=line):
                    candidate = payload_dict(candidate, body=line)
                    text = _candidate_text(candidate)
                    if text:
                        yield DeltaEvent.fragment(text)
                    if candidate.get("finishReason"):
                        finish_reason = _finish_reason(candidate["finishReason"])

        if finish_reason is None:
            raise malformed("Provider stream ended before completion")
        yield DeltaEvent.finish(finish_reason, usage)


def _candidate_text(candidate: dict[str, Any]) -> str:
    content = payload_dict(candidate.get("content"), body=candidate)
    parts = payload_list(content.get("parts"), body=candidate)
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


def _finish_reason(raw: Any) -> str:
    if not raw:
        return "stop"
    if not isinstance(raw, str):
        raise malformed(body=raw)
    return _FINISH_REASONS.get(raw, raw.lower())


def _usage(raw: Any) -> Usage:
    if not isinstance(raw, dict):
        return Usage()
    return Usage(
        input_tokens=int(raw.get("promptTokenCount") or 0),
        output_tokens=int(raw.get("candidatesTokenCount") or 0),
    )


def _format_contents(messages: list[ChatMessage]) -> list[dict[str, Any]]:
    """Gemini names the assistant role "model"; system turns are lifted out."""
    return [
        {
            "role": "model" if msg.role == "assistant" else "user",
            "parts": [{"text": msg.content}],
        }
        for msg in messages
        if msg.role != "system"
    ]
