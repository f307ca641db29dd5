"""
Pre-flight request validation and token budgeting.

Everything here is a pure function of the normalized request and static
model metadata, so a request that cannot succeed is rejected before any
network I/O.
"""

from __future__ import annotations

import logging

import jsonschema

from chatadapter.errors import RequestValidationError, TokenBudgetExceeded
from chatadapter.llm.token_counter import TokenCounter
from chatadapter.llm.types import ChatMessage, ToolDefinition

logger = logging.getLogger(__name__)

MAX_TOOLS_PER_REQUEST = 128


def validate_tools(tools: list[ToolDefinition] | None) -> None:
    if not tools:
        return
    if len(tools) > MAX_TOOLS_PER_REQUEST:
        raise RequestValidationError(
            f"Cannot have more than {MAX_TOOLS_PER_REQUEST} tools per request."
        )
    for tool in tools:
        if not tool.name:
            raise RequestValidationError("Tool definition has no name")
        if tool.parameters is None:
            continue
        try:
            validator_cls = jsonschema.validators.validator_for(tool.parameters)
            validator_cls.check_schema(tool.parameters)
        except jsonschema.SchemaError as e:
            raise RequestValidationError(
                f"Tool {tool.name!r} has an invalid parameter schema: {e.message}"
            ) from e


def validate_request(
    messages: list[ChatMessage], tools: list[ToolDefinition] | None = None
) -> None:
    """Raise ``RequestValidationError`` for requests the API would reject."""
    if not messages:
        raise RequestValidationError("Messages array is empty")
    for msg in messages:
        if not msg.parts:
            raise RequestValidationError("Message has no content")
    validate_tools(tools)


def check_budget(
    messages: list[ChatMessage],
    wire_tools: list[dict] | None,
    token_limit: int,
    counter: TokenCounter | None = None,
) -> int:
    """
    Ensure the estimated request fits in *token_limit* input tokens.

    Returns the estimated total on success.
    """
    counter = counter or TokenCounter()
    message_tokens = counter.count_messages(messages)
    tool_tokens = counter.count_tools(wire_tools)
    total = message_tokens + tool_tokens
    limit = max(1, token_limit)
    if total > limit:
        logger.warning(
            "Message exceeds token limit: total=%d messages=%d tools=%d limit=%d",
            total,
            message_tokens,
            tool_tokens,
            limit,
        )
        raise TokenBudgetExceeded(total, limit, message_tokens, tool_tokens)
    return total
