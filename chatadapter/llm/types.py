"""Core types for the LLM subsystem."""

from __future__ import annotations

import base64
import json
import random
import string
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

_ID_ALPHABET = string.ascii_lowercase + string.digits

VALID_ROLES = ("user", "assistant", "system", "tool")


def new_call_id(prefix: str = "call") -> str:
    """Return a synthetic tool-call id such as ``call_k3v9x0aq``."""
    return f"{prefix}_{''.join(random.choices(_ID_ALPHABET, k=8))}"


# ---------------------------------------------------------------------------
# Content parts (closed variant)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextPart:
    value: str


@dataclass(frozen=True)
class ImagePart:
    """Raw image bytes with an ``image/*`` MIME type."""

    mime_type: str
    data: bytes

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"

    @property
    def is_sendable(self) -> bool:
        return self.mime_type.startswith("image/") and len(self.data) > 0


@dataclass(frozen=True)
class ToolCall:
    """A resolved tool call with parsed arguments."""

    id: str
    name: str
    arguments: dict


@dataclass(frozen=True)
class ToolResultPart:
    """The output of a tool call, sent back to the model as text."""

    call_id: str
    content: str


ContentPart = Union[TextPart, ImagePart, ToolCall, ToolResultPart]

# What the adapter reports to the host's progress sink.
ResponsePart = Union[TextPart, ToolCall]


@dataclass
class ChatMessage:
    """A single host message with already-normalized parts."""

    role: str  # "user", "assistant", "system", "tool"
    parts: list[ContentPart] = field(default_factory=list)
    name: str | None = None

    @classmethod
    def user(cls, *parts: ContentPart | str) -> ChatMessage:
        return cls("user", [TextPart(p) if isinstance(p, str) else p for p in parts])

    @classmethod
    def assistant(cls, *parts: ContentPart | str) -> ChatMessage:
        return cls("assistant", [TextPart(p) if isinstance(p, str) else p for p in parts])

    def texts(self) -> list[str]:
        return [p.value for p in self.parts if isinstance(p, TextPart)]

    def images(self) -> list[ImagePart]:
        return [p for p in self.parts if isinstance(p, ImagePart)]

    def tool_calls(self) -> list[ToolCall]:
        return [p for p in self.parts if isinstance(p, ToolCall)]

    def tool_results(self) -> list[ToolResultPart]:
        return [p for p in self.parts if isinstance(p, ToolResultPart)]


@dataclass(frozen=True)
class ToolDefinition:
    """A host-supplied tool declaration, passed through to the wire."""

    name: str
    description: str = ""
    parameters: dict | None = None

    def to_wire(self) -> dict:
        function: dict[str, Any] = {"name": self.name}
        if self.description:
            function["description"] = self.description
        if self.parameters is not None:
            function["parameters"] = self.parameters
        return {"type": "function", "function": function}


@dataclass
class RequestOptions:
    """
    Per-request options supplied by the host.

    *model_options* is untrusted: only allow-listed keys reach the wire.
    """

    tools: list[ToolDefinition] = field(default_factory=list)
    model_options: dict[str, Any] = field(default_factory=dict)
    tool_choice: str | None = None


@dataclass(frozen=True)
class ChatInformation:
    """What the host is told about a selectable model."""

    id: str
    name: str
    tooltip: str
    family: str
    version: str
    max_input_tokens: int
    max_output_tokens: int
    tool_calling: int  # max tools per request, 0 when unsupported
    image_input: bool


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------

@dataclass
class RawToolDelta:
    """
    An incremental delta for a streaming tool call.

    ``call_index`` is the stream position, not an identity: every delta with
    the same index extends the same buffered call.
    """

    call_index: int
    id: str | None = None
    name_delta: str = ""
    args_delta: str = ""


@dataclass
class StreamDelta:
    """
    The first choice of one decoded SSE event.

    *content* is answer text, *reasoning* the thinking side-channel,
    *tool_deltas* the structured tool-call fragments.
    """

    content: str = ""
    reasoning: str = ""
    tool_deltas: list[RawToolDelta] = field(default_factory=list)
    finish_reason: str | None = None

    @classmethod
    def from_event(cls, data: dict) -> StreamDelta | None:
        """Convert a parsed SSE ``data`` payload; ``None`` when it has no choices."""
        choices = data.get("choices")
        if not choices or not isinstance(choices, list):
            return None

        choice = choices[0]
        if not isinstance(choice, dict):
            return None
        delta = choice.get("delta")
        if not isinstance(delta, dict):
            delta = {}

        tool_deltas: list[RawToolDelta] = []
        raw_calls = delta.get("tool_calls")
        for raw_tc in raw_calls if isinstance(raw_calls, list) else []:
            if not isinstance(raw_tc, dict):
                continue
            func = raw_tc.get("function") or {}
            if not isinstance(func, dict):
                continue
            idx = raw_tc.get("index")
            tc_id = raw_tc.get("id")
            name = func.get("name")
            args = func.get("arguments")
            tool_deltas.append(
                RawToolDelta(
                    call_index=idx if isinstance(idx, int) else 0,
                    id=tc_id if isinstance(tc_id, str) and tc_id else None,
                    name_delta=name if isinstance(name, str) else "",
                    args_delta=args if isinstance(args, str) else "",
                )
            )

        finish = choice.get("finish_reason")
        content = delta.get("content")
        reasoning = delta.get("reasoning_content")
        return cls(
            content=str(content) if content else "",
            reasoning=str(reasoning) if reasoning else "",
            tool_deltas=tool_deltas,
            finish_reason=finish if isinstance(finish, str) else None,
        )


# ---------------------------------------------------------------------------
# JSON parse outcomes
# ---------------------------------------------------------------------------

class ParseStatus(Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    INVALID = "invalid"


@dataclass(frozen=True)
class ParseOutcome:
    status: ParseStatus
    value: dict | None = None
    error: str | None = None

    @property
    def complete(self) -> bool:
        return self.status is ParseStatus.COMPLETE


def parse_json_object(text: str) -> ParseOutcome:
    """
    Parse *text* as a JSON object.

    A decode error at the end of the input (or inside a string that never
    closes) means more text may still arrive, so it is INCOMPLETE rather than
    INVALID.  Well-formed JSON that is not an object is INVALID.
    """
    stripped = text.strip()
    try:
        value = json.loads(stripped)
    except json.JSONDecodeError as exc:
        if exc.pos >= len(stripped) or exc.msg.startswith("Unterminated string"):
            return ParseOutcome(ParseStatus.INCOMPLETE, error=exc.msg)
        return ParseOutcome(ParseStatus.INVALID, error=str(exc))
    if not isinstance(value, dict):
        return ParseOutcome(
            ParseStatus.INVALID, error=f"expected a JSON object, got {type(value).__name__}"
        )
    return ParseOutcome(ParseStatus.COMPLETE, value=value)
