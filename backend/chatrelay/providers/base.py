"""
Base provider interface.

Defines the invocation contract every provider adapter implements and the
transient value types that flow through it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from chatrelay.core.errors import ProviderInvocationError

ROLES = frozenset({"system", "user", "assistant"})


@dataclass(frozen=True)
class ChatMessage:
    """A single chat message."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass(frozen=True)
class Usage:
    """Token accounting reported by the provider."""

    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


@dataclass
class ChatRequest:
    """Request for chat completion."""

    messages: list[ChatMessage]
    model: str
    temperature: float = 0.7
    max_output_tokens: int = 1000


@dataclass
class InvocationResult:
    """Complete single-shot response."""

    text: str
    finish_reason: str
    usage: Usage = field(default_factory=Usage)
    provider_id: str | None = None
    provider_name: str | None = None
    model_id: str | None = None


@dataclass(frozen=True)
class DeltaEvent:
    """One element of a delta sequence.

    Fragments carry ``text``; the terminal event carries ``finish_reason`` and
    ``usage``. A stream broken mid-way ends with a terminal event whose
    finish reason is ``"error"`` and whose ``error`` is set.
    """

    kind: Literal["delta", "finish"]
    text: str = ""
    finish_reason: str | None = None
    usage: Usage | None = None
    error: ProviderInvocationError | None = None

    @property
    def is_terminal(self) -> bool:
        return self.kind == "finish"

    @classmethod
    def fragment(cls, text: str) -> DeltaEvent:
        return cls(kind="delta", text=text)

    @classmethod
    def finish(cls, finish_reason: str, usage: Usage | None = None) -> DeltaEvent:
        return cls(kind="finish", finish_reason=finish_reason, usage=usage or Usage())

    @classmethod
    def failure(cls, error: ProviderInvocationError) -> DeltaEvent:
        return cls(kind="finish", finish_reason="error", usage=Usage(), error=error)


class BaseProvider(ABC):
    """
    Abstract base class for provider adapters.

    One adapter exists per provider id. Adapters translate ChatRequest into
    the vendor wire format and raise ProviderInvocationError on failure.
    """

    provider_id: str
    display_name: str

    async def aclose(self) -> None:
        """Close any underlying resources (optional)."""
        return None

    @abstractmethod
    async def chat_once(self, request: ChatRequest) -> InvocationResult:
        """
        Send a chat request and wait for the complete response.

        Raises:
            ProviderInvocationError: network failure, non-2xx status, or
                a payload that cannot be interpreted.
        """
        ...

    @abstractmethod
    def chat_stream(self, request: ChatRequest) -> AsyncIterator[DeltaEvent]:
        """
        Send a chat request and stream the response.

        Yields fragments followed by exactly one terminal event. Closing the
        iterator early must release the HTTP response.
        """
        ...


@dataclass(frozen=True)
class ModelHandle:
    """Opaque binding of a provider adapter to one model id."""

    provider_id: str
    model_id: str
    provider: BaseProvider = field(repr=False, compare=False)
    display_name: str = ""

    def build_request(
        self,
        messages: list[ChatMessage],
        *,
        max_output_tokens: int,
        temperature: float,
    ) -> ChatRequest:
        return ChatRequest(
            messages=list(messages),
            model=self.model_id,
            temperature=temperature,
            max_output_tokens=max_output_tokens,
        )


def coerce_message(raw: ChatMessage | dict[str, Any]) -> ChatMessage:
    """Accept a ChatMessage or a {role, content} mapping."""
    if isinstance(raw, ChatMessage):
        return raw
    return ChatMessage(role=raw["role"], content=raw["content"])
