"""Error taxonomy for the adapter.

Validation errors are raised before any network I/O, upstream errors carry the
HTTP status and body text, protocol errors mean the server broke a promise
about stream completeness, and cancellation is kept distinct from all of them
so the host can tell "user stopped this" from "this failed".
"""

from __future__ import annotations


class ErrorCode:
    VALIDATION_ERROR = "validation_error"
    TOKEN_BUDGET = "token_budget"
    UPSTREAM_ERROR = "upstream_error"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    LLM_PROTOCOL_ERROR = "llm_protocol_error"
    CANCELLED = "cancelled"


class AdapterError(Exception):
    """Base class for every error raised by chatadapter."""

    def __init__(self, message: str, code: str = ""):
        super().__init__(message)
        self.code = code


class RequestValidationError(AdapterError):
    def __init__(self, message: str):
        super().__init__(message, code=ErrorCode.VALIDATION_ERROR)


class TokenBudgetExceeded(RequestValidationError):
    """The estimated request size does not fit the model's input budget."""

    def __init__(self, estimated: int, limit: int, message_tokens: int, tool_tokens: int):
        super().__init__(
            f"Message exceeds token limit: estimated {estimated} tokens "
            f"({message_tokens} message + {tool_tokens} tool) > limit {limit}."
        )
        self.code = ErrorCode.TOKEN_BUDGET
        self.estimated = estimated
        self.limit = limit
        self.message_tokens = message_tokens
        self.tool_tokens = tool_tokens


class UpstreamError(AdapterError):
    """Non-2xx response from the chat-completions endpoint."""

    default_code = ErrorCode.UPSTREAM_ERROR

    def __init__(self, message: str, status: int | None = None, body: str = ""):
        super().__init__(message, code=self.default_code)
        self.status = status
        self.body = body


class PermissionDeniedError(UpstreamError):
    default_code = ErrorCode.PERMISSION_DENIED


class NotFoundError(UpstreamError):
    default_code = ErrorCode.NOT_FOUND


class RateLimitedError(UpstreamError):
    default_code = ErrorCode.RATE_LIMITED


class ToolCallProtocolError(AdapterError):
    """Tool-call arguments were not valid JSON at an explicit finish reason."""

    def __init__(self, message: str, index: int | None = None, snippet: str = ""):
        super().__init__(message, code=ErrorCode.LLM_PROTOCOL_ERROR)
        self.index = index
        self.snippet = snippet


class RequestCancelled(AdapterError):
    """The caller's cancellation token fired."""

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message, code=ErrorCode.CANCELLED)


_STATUS_ERRORS: dict[int, type[UpstreamError]] = {
    401: PermissionDeniedError,
    403: PermissionDeniedError,
    404: NotFoundError,
    429: RateLimitedError,
}


def error_for_status(status: int, reason: str, body: str) -> UpstreamError:
    """Build the categorized error for an upstream HTTP *status*."""
    message = f"Upstream API error: {status} {reason}".rstrip()
    if body:
        message += f"\n{body}"
    cls = _STATUS_ERRORS.get(status, UpstreamError)
    return cls(message, status=status, body=body)
