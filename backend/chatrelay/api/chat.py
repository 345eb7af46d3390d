"""Chat endpoints: single-shot and Server-Sent Events streaming."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from chatrelay.api.deps import get_chat_service
from chatrelay.core.logging import request_id_ctx, stream_id_ctx
from chatrelay.services import ChatService, DeltaStream

router = APIRouter(tags=["chat"])


class ChatMessageBody(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequestBody(BaseModel):
    messages: list[ChatMessageBody]
    provider_id: str | None = None
    model_id: str | None = None
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    max_output_tokens: int | None = Field(None, gt=0)


def _format_sse_event(event: str, payload: dict[str, Any]) -> str:
    """Serialize an event to SSE format."""
    data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return f"event: {event}\ndata: {data}\n\n"


async def _sse_events(stream: DeltaStream) -> AsyncIterator[str]:
    # scoped to the response task, which ends with the stream
    stream_id_ctx.set(stream.stream_id)
    try:
        yield _format_sse_event(
            "start",
            {"stream_id": stream.stream_id, "provider_id": stream.provider_id, "model_id": stream.model_id},
        )
        async for event in stream:
            if not event.is_terminal:
                yield _format_sse_event("delta", {"text": event.text})
            elif event.error is not None:
                yield _format_sse_event(
                    "error",
                    {
                        "code": event.error.code.value,
                        "kind": event.error.kind.value,
                        "message": event.error.message,
                    },
                )
            else:
                yield _format_sse_event(
                    "done",
                    {
                        "finish_reason": event.finish_reason,
                        "usage": event.usage.to_dict() if event.usage else None,
                    },
                )
    finally:
        # client disconnects land here as GeneratorExit / CancelledError
        await stream.aclose()


@router.post("/chat")
async def chat_route(
    body: ChatRequestBody = Body(...),
    chat_service: ChatService = Depends(get_chat_service),
) -> dict[str, Any]:
    result = await chat_service.process_message(
        [message.model_dump() for message in body.messages],
        body.provider_id,
        body.model_id,
        max_output_tokens=body.max_output_tokens,
        temperature=body.temperature,
    )
    return {
        "text": result.text,
        "finish_reason": result.finish_reason,
        "usage": result.usage.to_dict(),
        "provider_id": result.provider_id,
        "provider_name": result.provider_name,
        "model_id": result.model_id,
    }


@router.post("/chat/stream")
async def chat_stream_route(
    body: ChatRequestBody = Body(...),
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    stream = await chat_service.stream_message(
        [message.model_dump() for message in body.messages],
        body.provider_id,
        body.model_id,
        max_output_tokens=body.max_output_tokens,
        temperature=body.temperature,
    )
    request_id = request_id_ctx.get()
    headers = {"Cache-Control": "no-cache", "X-Stream-ID": stream.stream_id}
    if request_id:
        headers["X-Request-ID"] = request_id
    return StreamingResponse(_sse_events(stream), media_type="text/event-stream", headers=headers)
