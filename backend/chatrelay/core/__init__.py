"""Core module with logging, errors, metrics and time helpers."""

from chatrelay.core.errors import (
    AppError,
    BranchEmptyError,
    ConfigNotFoundError,
    ConfigValidationError,
    ConversationNotFoundError,
    EmptyMessagesError,
    ErrorCode,
    ErrorResponse,
    InvocationErrorKind,
    MessageNotFoundError,
    MissingCredentialsError,
    NotFoundError,
    ProviderInvocationError,
    RepositoryNotConfiguredError,
    StreamConsumedError,
    UnknownProviderError,
    ValidationError,
)
from chatrelay.core.logging import get_logger, request_id_ctx, setup_logging, stream_id_ctx

__all__ = [
    # Errors
    "AppError",
    "BranchEmptyError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "ConversationNotFoundError",
    "EmptyMessagesError",
    "ErrorCode",
    "ErrorResponse",
    "InvocationErrorKind",
    "MessageNotFoundError",
    "MissingCredentialsError",
    "NotFoundError",
    "ProviderInvocationError",
    "RepositoryNotConfiguredError",
    "StreamConsumedError",
    "UnknownProviderError",
    "ValidationError",
    # Logging
    "get_logger",
    "request_id_ctx",
    "setup_logging",
    "stream_id_ctx",
]
