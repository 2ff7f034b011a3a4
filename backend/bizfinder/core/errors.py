"""
Error kinds raised by the chat core.

Request-level errors (ChatValidationError, BackendUnavailableError) propagate
to the HTTP layer as structured faults. Tool-level errors (ToolNotFoundError,
ToolExecutionError) are converted into error tool results inside the
conversation loop and never reach the caller.
"""
from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base class for chat core errors."""

    kind = "ChatError"
    retryable = False
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "kind": self.kind,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ChatValidationError(ChatError):
    """Missing or invalid request input."""

    kind = "ValidationError"
    status_code = 400


class BackendUnavailableError(ChatError):
    """Record store or model service unreachable, timed out, or circuit open."""

    kind = "BackendUnavailable"
    retryable = True
    status_code = 503

    def __init__(
        self,
        message: str,
        backend: str = "unknown",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.backend = backend


class ModelRequestError(ChatError):
    """The model service refused the request (4xx other than bad input or rate limit)."""

    kind = "ModelRequestRejected"
    status_code = 502


class ToolNotFoundError(ChatError):
    """The model asked for a tool name that is not registered."""

    kind = "ToolNotFound"

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(ChatError):
    """A tool handler could not complete (bad input, store failure, timeout)."""

    kind = "ToolExecutionError"

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class DuplicateReviewError(ChatError):
    """The reviewer already reviewed this item."""

    kind = "DuplicateReview"
    status_code = 409
