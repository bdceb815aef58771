"""
Custom exception hierarchy for chat-sync.

Provides specific exceptions for the store's failure modes with
helpful error messages and context information.
"""
from typing import Any, Dict, Optional


class ChatSyncError(Exception):
    """Base exception for all chat-sync errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message


# Configuration Errors
class ConfigurationError(ChatSyncError):
    """Error in configuration loading or validation."""
    pass


# Lookup Errors
class NotFoundError(ChatSyncError):
    """Base class for unknown entity ids."""

    entity = "entity"

    def __init__(
        self,
        entity_id: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.entity_id = entity_id
        context = context or {}
        context[f"{self.entity}_id"] = entity_id
        super().__init__(f"Unknown {self.entity}", context, cause)


class ChatNotFoundError(NotFoundError):
    """Chat id is not known to the store."""
    entity = "chat"


class MessageNotFoundError(NotFoundError):
    """Message id is not known within its chat."""
    entity = "message"


class UserNotFoundError(NotFoundError):
    """User id is not registered."""
    entity = "user"


# Argument Errors
class InvalidArgumentError(ChatSyncError):
    """Missing, empty or conflicting argument."""

    def __init__(
        self,
        message: str,
        argument: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.argument = argument
        context = context or {}
        if argument:
            context["argument"] = argument
        super().__init__(message, context, cause)


# Access Errors
class UnauthorizedError(ChatSyncError):
    """User is not a participant of the chat being acted on."""

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        chat_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.user_id = user_id
        self.chat_id = chat_id
        context = context or {}
        if user_id:
            context["user_id"] = user_id
        if chat_id:
            context["chat_id"] = chat_id
        super().__init__(message, context, cause)


# External Collaborator Errors
class UpstreamFailureError(ChatSyncError):
    """An external collaborator (upload relay, ...) failed."""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.service = service
        self.status = status
        context = context or {}
        if service:
            context["service"] = service
        if status is not None:
            context["status"] = status
        super().__init__(message, context, cause)


# Context Manager for Error Handling
class ErrorContext:
    """Context manager for consistent error handling."""

    def __init__(
        self,
        operation: str,
        context: Optional[Dict[str, Any]] = None,
        reraise_as: Optional[type] = None
    ):
        self.operation = operation
        self.context = context or {}
        self.reraise_as = reraise_as

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            return False

        # Don't re-wrap chat-sync exceptions
        if isinstance(exc_val, ChatSyncError):
            return False

        if self.reraise_as:
            raise self.reraise_as(
                f"Error in {self.operation}: {exc_val}",
                context=self.context,
                cause=exc_val
            ) from exc_val
        else:
            raise ChatSyncError(
                f"Error in {self.operation}: {exc_val}",
                context=self.context,
                cause=exc_val
            ) from exc_val


def format_error_for_user(error: Exception) -> str:
    """Format error message for display to user."""
    if isinstance(error, ChatSyncError):
        return str(error)
    else:
        return f"Unexpected error: {error}"


def get_error_details(error: Exception) -> Dict[str, Any]:
    """Extract detailed error information for logging."""
    details = {
        "error_type": type(error).__name__,
        "message": str(error),
    }

    if isinstance(error, ChatSyncError):
        details.update({
            "context": error.context,
            "cause": str(error.cause) if error.cause else None,
        })

        if isinstance(error, NotFoundError):
            details["entity"] = error.entity
            details["entity_id"] = error.entity_id
        elif isinstance(error, UnauthorizedError) and error.user_id:
            details["user_id"] = error.user_id
        elif isinstance(error, UpstreamFailureError):
            if error.service:
                details["service"] = error.service
            if error.status is not None:
                details["status"] = error.status

    return details
