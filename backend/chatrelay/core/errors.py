"""
Structured error handling with stable error codes.

Every failure raised by the services is an AppError subclass carrying a
stable code. The HTTP boundary maps them to response bodies; nothing in the
core swallows them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Stable error codes for API responses."""

    # General errors (1xxx)
    INTERNAL_ERROR = "E1000"
    VALIDATION_ERROR = "E1001"
    NOT_FOUND = "E1002"
    METHOD_NOT_ALLOWED = "E1003"

    # Configuration errors (2xxx)
    CONFIG_NOT_FOUND = "E2000"
    CONFIG_INVALID = "E2001"
    REPOSITORY_NOT_CONFIGURED = "E2002"

    # Provider errors (4xxx)
    UNKNOWN_PROVIDER = "E4000"
    MISSING_CREDENTIALS = "E4001"
    PROVIDER_NETWORK = "E4002"
    PROVIDER_UPSTREAM_STATUS = "E4003"
    PROVIDER_BAD_RESPONSE = "E4004"
    STREAM_CONSUMED = "E4005"

    # Resource errors (5xxx)
    CONVERSATION_NOT_FOUND = "E5000"
    MESSAGE_NOT_FOUND = "E5001"
    EMPTY_MESSAGES = "E5002"
    BRANCH_EMPTY = "E5003"


class InvocationErrorKind(str, Enum):
    """Machine-distinguishable reasons a provider invocation failed."""

    NETWORK = "network"
    UPSTREAM_STATUS = "upstream-status"
    MALFORMED_RESPONSE = "malformed-response"


_INVOCATION_CODES = {
    InvocationErrorKind.NETWORK: ErrorCode.PROVIDER_NETWORK,
    InvocationErrorKind.UPSTREAM_STATUS: ErrorCode.PROVIDER_UPSTREAM_STATUS,
    InvocationErrorKind.MALFORMED_RESPONSE: ErrorCode.PROVIDER_BAD_RESPONSE,
}


@dataclass(frozen=True)
class ErrorResponse:
    """Structured error response for API.

    Format: {error: {code, message, request_id, details?}}
    """

    code: ErrorCode
    message: str
    request_id: str | None = None
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON response."""
        error: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.request_id:
            error["request_id"] = self.request_id
        if self.details:
            error["details"] = self.details
        return {"error": error}


class AppError(Exception):
    """Base application error with structured error detail."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_response(self, request_id: str | None = None) -> ErrorResponse:
        """Create error response with request ID."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            request_id=request_id,
            details=self.details,
        )


class ValidationError(AppError):
    """Validation error (400)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.VALIDATION_ERROR, message, 400, details)


class NotFoundError(AppError):
    """Conversation or message not found (404)."""

    def __init__(
        self,
        message: str = "Resource not found",
        code: ErrorCode = ErrorCode.NOT_FOUND,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code, message, 404, details)


class ConversationNotFoundError(NotFoundError):
    """Conversation id is unknown (404)."""

    def __init__(self, conversation_id: str):
        super().__init__(
            f"Conversation '{conversation_id}' not found",
            code=ErrorCode.CONVERSATION_NOT_FOUND,
            details={"conversation_id": conversation_id},
        )


class MessageNotFoundError(NotFoundError):
    """Message id is unknown (404)."""

    def __init__(self, message_id: int):
        super().__init__(
            f"Message '{message_id}' not found",
            code=ErrorCode.MESSAGE_NOT_FOUND,
            details={"message_id": message_id},
        )


class UnknownProviderError(AppError):
    """Provider id is not in the static provider set (400)."""

    def __init__(self, provider_id: str | None):
        super().__init__(
            ErrorCode.UNKNOWN_PROVIDER,
            f"Unknown provider: {provider_id}",
            400,
            {"provider_id": provider_id},
        )


class MissingCredentialsError(AppError):
    """Provider credential is not present in the environment (503)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.MISSING_CREDENTIALS, message, 503, details)


class ConfigNotFoundError(AppError):
    """No catalog entry for the requested provider (404)."""

    def __init__(self, provider_id: str | None):
        super().__init__(
            ErrorCode.CONFIG_NOT_FOUND,
            f"Configuration not found for provider: {provider_id}",
            404,
            {"provider_id": provider_id},
        )


class ConfigValidationError(AppError):
    """Model catalog violates its schema (500)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(ErrorCode.CONFIG_INVALID, message, 500, details)


class EmptyMessagesError(AppError):
    """Chat request carried no messages (400)."""

    def __init__(self, message: str = "At least one message is required"):
        super().__init__(ErrorCode.EMPTY_MESSAGES, message, 400)


class ProviderInvocationError(AppError):
    """Upstream provider call failed (502)."""

    def __init__(
        self,
        kind: InvocationErrorKind,
        message: str = "Provider invocation failed",
        details: dict[str, Any] | None = None,
    ):
        self.kind = kind
        merged = {"kind": kind.value}
        if details:
            merged.update(details)
        super().__init__(_INVOCATION_CODES[kind], message, 502, merged)


class BranchEmptyError(AppError):
    """Branch cutoff excludes every source message (400)."""

    def __init__(self, conversation_id: str):
        super().__init__(
            ErrorCode.BRANCH_EMPTY,
            "No messages at or before the branch point",
            400,
            {"conversation_id": conversation_id},
        )


class RepositoryNotConfiguredError(AppError):
    """Persistence requested from a service built without a repository (503)."""

    def __init__(self, message: str = "Chat repository not configured for persistence"):
        super().__init__(ErrorCode.REPOSITORY_NOT_CONFIGURED, message, 503)


class StreamConsumedError(AppError):
    """A delta stream was iterated a second time (409)."""

    def __init__(self, message: str = "Delta stream can only be consumed once"):
        super().__init__(ErrorCode.STREAM_CONSUMED, message, 409)
