"""
Convert normalized host messages into OpenAI wire messages.

Text parts are concatenated in order.  When a message carries images the
content becomes a multipart array (text first, then one ``image_url`` entry
per image), because the wire format only accepts images in that form.  Tool
results are folded into the message text, since the protocol represents them
as ``role="tool"`` messages with string content.
"""

from __future__ import annotations

import json

from chatadapter.llm.types import ChatMessage, ToolDefinition, new_call_id

EMPTY_CONTENT_PLACEHOLDER = "(empty message)"
DEFAULT_MAX_TOOL_RESULT_CHARS = 20_000


def truncate_tool_result(text: str, max_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + f"\n...[truncated {len(text) - max_chars} chars]"


def message_text(
    msg: ChatMessage, max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS
) -> str:
    """Return the plain-text content a message will carry on the wire."""
    pieces = []
    text = "".join(msg.texts())
    if text:
        pieces.append(text)
    for result in msg.tool_results():
        pieces.append(truncate_tool_result(result.content, max_tool_result_chars))
    return "\n".join(pieces)


def convert_message(
    msg: ChatMessage, max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS
) -> dict:
    text = message_text(msg, max_tool_result_chars)
    images = [img for img in msg.images() if img.is_sendable]
    results = msg.tool_results()

    role = "tool" if results else msg.role
    m: dict = {"role": role}

    if images:
        content: list[dict] = []
        if text:
            content.append({"type": "text", "text": text})
        for img in images:
            content.append({"type": "image_url", "image_url": {"url": img.to_data_url()}})
        m["content"] = content
    else:
        m["content"] = text or EMPTY_CONTENT_PLACEHOLDER

    if msg.name:
        m["name"] = msg.name

    calls = msg.tool_calls()
    if calls:
        m["tool_calls"] = [
            {
                "id": tc.id or new_call_id(),
                "type": "function",
                "function": {
                    "name": tc.name,
                    "arguments": json.dumps(tc.arguments),
                },
            }
            for tc in calls
        ]

    if results:
        m["tool_call_id"] = results[0].call_id

    return m


def convert_messages(
    messages: list[ChatMessage],
    max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS,
) -> list[dict]:
    return [convert_message(m, max_tool_result_chars) for m in messages]


def convert_tools(tools: list[ToolDefinition] | None) -> list[dict]:
    if not tools:
        return []
    return [t.to_wire() for t in tools]
