"""
Recognise tool calls embedded in the answer-text channel.

Two inline encodings exist besides structured deltas:

* control-token spans::

      <|tool_call_begin|>name[:index]<|tool_call_argument_begin|>{...}<|tool_call_end|>

  (``<|tool_call_end|>`` directly after the header is a zero-argument call);

* a bare JSON object filling a whole line, shaped either
  ``{"name": ..., "arguments": ...}`` or ``{"function": {"name": ..., "arguments": ...}}``.

Text arrives in arbitrary fragments, so the parser is a small state machine
(``SCANNING`` -> ``IN_HEADER`` -> ``ACCUMULATING_ARGS``) with a carryover
buffer.  Any suffix that could be the start of a control token is held back
until the next fragment decides it.  A call is emitted the moment its
arguments parse as a JSON object; the shared ``EmittedToolCalls`` ledger keeps
it from being emitted again at the end token or by the structured path.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from chatadapter.llm.dedup import INLINE, EmittedToolCalls
from chatadapter.llm.types import (
    ResponsePart,
    TextPart,
    ToolCall,
    new_call_id,
    parse_json_object,
)

logger = logging.getLogger(__name__)

TOOL_CALL_BEGIN = "<|tool_call_begin|>"
TOOL_CALL_ARGUMENT_BEGIN = "<|tool_call_argument_begin|>"
TOOL_CALL_END = "<|tool_call_end|>"

UNKNOWN_TOOL = "unknown_tool"

_SECTION_TOKEN_RE = re.compile(r"<\|[A-Za-z0-9_-]+_section_(?:begin|end)\|>")
_CALL_TOKEN_RE = re.compile(r"<\|tool_call_(?:argument_)?(?:begin|end)\|>")
# An unterminated control token at the very end of a fragment.
_PARTIAL_TOKEN_RE = re.compile(r"<(?:\|[A-Za-z0-9_-]*\|?)?$")
_MAX_PARTIAL_TOKEN = 64
_HEADER_RE = re.compile(r"^([A-Za-z0-9_\-.]+)(?::(\d+))?")
_LINE_SPLIT_RE = re.compile(r"\r?\n")


def strip_control_tokens(text: str) -> str:
    """Remove section and tool-call control tokens from visible text."""
    return _CALL_TOKEN_RE.sub("", _SECTION_TOKEN_RE.sub("", text))


def partial_suffix_len(data: str, token: str) -> int:
    """Length of the longest suffix of *data* that is a proper prefix of *token*."""
    for k in range(min(len(token) - 1, len(data)), 0, -1):
        if data.endswith(token[:k]):
            return k
    return 0


def _held_suffix_len(data: str) -> int:
    k = partial_suffix_len(data, TOOL_CALL_BEGIN)
    m = _PARTIAL_TOKEN_RE.search(data)
    if m and len(data) - m.start() <= _MAX_PARTIAL_TOKEN:
        k = max(k, len(data) - m.start())
    return k


def parse_json_tool_line(line: str) -> tuple[str, dict, str | None] | None:
    """
    Recognise a bare JSON tool call occupying a whole line.

    Returns ``(name, arguments, call_id)`` or ``None``.
    """
    trimmed = line.strip()
    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return None
    outcome = parse_json_object(trimmed)
    if not outcome.complete:
        return None

    obj = outcome.value or {}
    fn = obj.get("function")
    fn = fn if isinstance(fn, dict) else {}
    name = obj.get("name")
    if not isinstance(name, str):
        name = fn.get("name")
    if not isinstance(name, str) or not name:
        return None

    call_id = obj.get("callId")
    if not isinstance(call_id, str):
        call_id = obj.get("id")
    if not isinstance(call_id, str) or not call_id:
        call_id = None

    args = obj.get("input")
    if not isinstance(args, dict):
        args = obj.get("arguments", fn.get("arguments"))
        if isinstance(args, str):
            parsed = parse_json_object(args)
            if not parsed.complete:
                return None
            args = parsed.value
        elif not isinstance(args, dict):
            return None
    return name, args, call_id


class ParserState(Enum):
    SCANNING = "scanning"
    IN_HEADER = "in_header"
    ACCUMULATING_ARGS = "accumulating_args"


@dataclass
class _ActiveCall:
    name: str | None
    index: int | None
    args: str = ""
    emitted: bool = False


class _Output:
    """Collects visible text and calls, keeping their relative order."""

    def __init__(self) -> None:
        self.parts: list[ResponsePart] = []
        self._text: list[str] = []

    def text(self, value: str) -> None:
        if value:
            self._text.append(value)

    def call(self, call: ToolCall) -> None:
        self._flush_text()
        self.parts.append(call)

    def result(self) -> list[ResponsePart]:
        self._flush_text()
        return self.parts

    def _flush_text(self) -> None:
        if self._text:
            self.parts.append(TextPart("".join(self._text)))
            self._text.clear()


class InlineToolCallParser:
    """Streams answer text in, gets visible text and tool calls out."""

    def __init__(self, emitted: EmittedToolCalls | None = None) -> None:
        self._emitted = emitted if emitted is not None else EmittedToolCalls()
        self.state = ParserState.SCANNING
        self._carry = ""
        self._active: _ActiveCall | None = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, text: str) -> list[ResponsePart]:
        """Consume one fragment.  Returns the parts it completes, in order."""
        out = _Output()
        data = self._carry + text
        self._carry = ""

        while data:
            if self.state is ParserState.SCANNING:
                data = self._scan(data, out)
            elif self.state is ParserState.IN_HEADER:
                data = self._read_header(data, out)
            else:
                data = self._accumulate(data, out)

        return out.result()

    def flush(self) -> list[ResponsePart]:
        """
        End of turn.  An active call is emitted only if its arguments now
        parse; otherwise it is dropped.  A held-back partial token that never
        completed is released as text.
        """
        out = _Output()
        carry, self._carry = self._carry, ""

        if self.state is ParserState.SCANNING:
            out.text(strip_control_tokens(carry))
        elif self.state is ParserState.IN_HEADER:
            logger.debug("Dropping unterminated tool-call header: %s", carry[:200])
        elif self._active is not None:
            active = self._active
            active.args += carry
            if not active.emitted:
                outcome = parse_json_object(active.args)
                if outcome.complete:
                    self._emit(active, outcome.value or {}, out)
                else:
                    logger.debug(
                        "Dropping incomplete inline tool call %s at end of turn",
                        active.name,
                    )

        self.reset()
        return out.result()

    def reset(self) -> None:
        self.state = ParserState.SCANNING
        self._carry = ""
        self._active = None

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _scan(self, data: str, out: _Output) -> str:
        b = data.find(TOOL_CALL_BEGIN)
        if b == -1:
            held = _held_suffix_len(data)
            if held:
                out.text(strip_control_tokens(data[: len(data) - held]))
                self._carry = data[len(data) - held:]
                return ""
            self._scan_lines(data, out)
            return ""

        out.text(strip_control_tokens(data[:b]))
        self.state = ParserState.IN_HEADER
        return data[b + len(TOOL_CALL_BEGIN):]

    def _read_header(self, data: str, out: _Output) -> str:
        a = data.find(TOOL_CALL_ARGUMENT_BEGIN)
        e = data.find(TOOL_CALL_END)
        if a == -1 and e == -1:
            self._carry = data
            return ""

        has_args = a != -1 and (e == -1 or a < e)
        delim = a if has_args else e
        m = _HEADER_RE.match(data[:delim].strip())
        name = m.group(1) if m else None
        index = int(m.group(2)) if m and m.group(2) else None
        active = _ActiveCall(name=name, index=index)

        if has_args:
            self._active = active
            self.state = ParserState.ACCUMULATING_ARGS
            return data[delim + len(TOOL_CALL_ARGUMENT_BEGIN):]

        self._emit(active, {}, out)
        self.state = ParserState.SCANNING
        return data[delim + len(TOOL_CALL_END):]

    def _accumulate(self, data: str, out: _Output) -> str:
        active = self._active
        assert active is not None

        e = data.find(TOOL_CALL_END)
        if e == -1:
            held = partial_suffix_len(data, TOOL_CALL_END)
            active.args += data[: len(data) - held]
            self._carry = data[len(data) - held:]
            self._try_emit(active, out)
            return ""

        active.args += data[:e]
        self._try_emit(active, out)
        self._active = None
        self.state = ParserState.SCANNING
        return data[e + len(TOOL_CALL_END):]

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def _try_emit(self, active: _ActiveCall, out: _Output) -> None:
        if active.emitted:
            return
        outcome = parse_json_object(active.args)
        if outcome.complete:
            self._emit(active, outcome.value or {}, out)

    def _emit(self, active: _ActiveCall, args: dict, out: _Output) -> None:
        active.emitted = True
        name = active.name or UNKNOWN_TOOL
        refs = (str(active.index),) if active.index is not None else ()
        if self._emitted.claim(name, args, refs=refs, source=INLINE):
            out.call(ToolCall(id=new_call_id("tct"), name=name, arguments=args))

    def _scan_lines(self, data: str, out: _Output) -> None:
        lines = _LINE_SPLIT_RE.split(data)
        last = len(lines) - 1
        for i, line in enumerate(lines):
            recognised = parse_json_tool_line(line)
            if recognised is not None:
                name, args, call_id = recognised
                refs = (call_id,) if call_id else ()
                if self._emitted.claim(name, args, refs=refs, source=INLINE):
                    out.call(
                        ToolCall(id=call_id or new_call_id("jtc"), name=name, arguments=args)
                    )
                continue
            out.text(strip_control_tokens(line))
            if i < last:
                out.text("\n")
