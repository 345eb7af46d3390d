"""Provider stubs shared by the test modules."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from chatrelay.providers.base import (
    BaseProvider,
    ChatRequest,
    DeltaEvent,
    InvocationResult,
    Usage,
)
from chatrelay.providers.metadata import PROVIDER_METADATA

ALL_KEYS = {metadata.env_var: f"test-{provider_id}-key" for provider_id, metadata in PROVIDER_METADATA.items()}


class ScriptedProvider(BaseProvider):
    """
    Provider stub that replays a fixed script.

    Strings are emitted as fragments; an exception in the script is raised at
    that point. ``gate`` blocks the stream after its first fragment until set;
    ``opening_gate`` blocks it before anything is produced.
    """

    def __init__(
        self,
        script: list[str | Exception],
        provider_id: str = "openai",
        display_name: str = "OpenAI",
        finish_reason: str = "stop",
        usage: Usage | None = None,
        gate: asyncio.Event | None = None,
        opening_gate: asyncio.Event | None = None,
    ):
        self.provider_id = provider_id
        self.display_name = display_name
        self.script = script
        self.finish_reason = finish_reason
        self.usage = usage or Usage(input_tokens=7, output_tokens=3)
        self.gate = gate
        self.opening_gate = opening_gate
        self.requests: list[ChatRequest] = []
        self.stream_closed = False
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True

    async def chat_once(self, request: ChatRequest) -> InvocationResult:
        self.requests.append(request)
        parts: list[str] = []
        for step in self.script:
            if isinstance(step, Exception):
                raise step
            parts.append(step)
        return InvocationResult(text="".join(parts), finish_reason=self.finish_reason, usage=self.usage)

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[DeltaEvent]:
        self.requests.append(request)
        try:
            if self.opening_gate is not None:
                await self.opening_gate.wait()
            for index, step in enumerate(self.script):
                await asyncio.sleep(0)
                if isinstance(step, Exception):
                    raise step
                yield DeltaEvent.fragment(step)
                if index == 0 and self.gate is not None:
                    await self.gate.wait()
            yield DeltaEvent.finish(self.finish_reason, self.usage)
        finally:
            self.stream_closed = True


def scripted_factories(providers: dict[str, BaseProvider]):
    """Registry factories returning the given stubs instead of HTTP adapters."""
    return {
        provider_id: (lambda settings, api_key, transport, provider=provider: provider)
        for provider_id, provider in providers.items()
    }
