"""
Translate the host's message and part representation into the closed
``ContentPart`` variant.

This is the only place that inspects foreign shapes.  Hosts hand us either
mappings (``{"type": "text", "text": ...}``) or objects with attributes
(``part.value``, ``part.mime_type``, ...).  Anything unrecognised is treated
as absent rather than raising, so new part kinds on the host side degrade to
"ignored" instead of failing the request.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections.abc import Iterable, Mapping
from typing import Any

from chatadapter.llm.types import (
    VALID_ROLES,
    ChatMessage,
    ContentPart,
    ImagePart,
    TextPart,
    ToolCall,
    ToolResultPart,
)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.S)


def _get(obj: Any, *names: str) -> Any:
    for name in names:
        if isinstance(obj, Mapping):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


def _image_from_data_url(url: str) -> ImagePart | None:
    m = _DATA_URL_RE.match(url)
    if not m:
        return None
    try:
        data = base64.b64decode(m.group("data"), validate=False)
    except (binascii.Error, ValueError):
        return None
    return ImagePart(mime_type=m.group("mime"), data=data)


def _result_text(content: Any) -> str:
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, Iterable) and not isinstance(content, Mapping):
        pieces = []
        for item in content:
            text = _get(item, "value", "text")
            if isinstance(text, str):
                pieces.append(text)
            else:
                pieces.append(json.dumps(item, default=str))
        return "".join(pieces)
    return json.dumps(content, default=str)


def to_content_part(raw: Any) -> ContentPart | None:
    """Return the closed-variant equivalent of a host part, or ``None``."""
    if isinstance(raw, (TextPart, ImagePart, ToolCall, ToolResultPart)):
        if isinstance(raw, ImagePart) and not raw.is_sendable:
            return None
        return raw
    if isinstance(raw, str):
        return TextPart(raw)

    kind = _get(raw, "type")

    # Tool call: has a name and an input/arguments payload.
    name = _get(raw, "name")
    if kind in ("tool_call", "function_call") or (
        isinstance(name, str) and _get(raw, "input", "arguments") is not None
        and kind is None
    ):
        args = _get(raw, "input", "arguments")
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                return None
        if not isinstance(name, str) or not isinstance(args, Mapping):
            return None
        call_id = _get(raw, "call_id", "callId", "id")
        return ToolCall(id=call_id if isinstance(call_id, str) else "", name=name, arguments=dict(args))

    # Tool result: has a call id and content, no name.
    if kind == "tool_result" or (
        kind is None and _get(raw, "call_id", "callId") is not None and name is None
    ):
        call_id = _get(raw, "call_id", "callId")
        if not isinstance(call_id, str):
            return None
        return ToolResultPart(call_id=call_id, content=_result_text(_get(raw, "content")))

    # Image: bytes + MIME type, or an image_url data URL.
    if kind in ("image", "image_url", "data") or _get(raw, "mime_type", "mimeType") is not None:
        mime = _get(raw, "mime_type", "mimeType")
        data = _get(raw, "data", "bytes")
        if isinstance(mime, str) and isinstance(data, (bytes, bytearray)):
            if not mime.startswith("image/"):
                return None
            part = ImagePart(mime_type=mime, data=bytes(data))
            return part if part.is_sendable else None
        url = _get(raw, "image_url", "url")
        if isinstance(url, Mapping):
            url = url.get("url")
        if isinstance(url, str):
            part = _image_from_data_url(url)
            if part is not None and part.is_sendable:
                return part
        return None

    text = _get(raw, "value", "text")
    if isinstance(text, str) and kind in (None, "text"):
        return TextPart(text)
    return None


def to_chat_message(raw: Any) -> ChatMessage:
    """Build a :class:`ChatMessage` from a host message mapping or object."""
    if isinstance(raw, ChatMessage):
        return raw

    role = _get(raw, "role")
    role = str(getattr(role, "value", role) or "user").lower()
    if role not in VALID_ROLES:
        role = "user"

    content = _get(raw, "content", "parts")
    if isinstance(content, str):
        raw_parts: list[Any] = [content]
    elif isinstance(content, Iterable) and not isinstance(content, Mapping):
        raw_parts = list(content)
    else:
        raw_parts = []

    parts = [p for p in (to_content_part(r) for r in raw_parts) if p is not None]
    name = _get(raw, "name")
    return ChatMessage(role=role, parts=parts, name=name if isinstance(name, str) else None)
