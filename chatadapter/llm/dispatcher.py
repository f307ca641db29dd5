"""
Route decoded stream events to the text, reasoning and tool-call handlers.

A ``DeltaDispatcher`` owns every piece of mutable parser state for exactly
one request: the structured tool-call buffers, the inline text parser, the
reasoning buffer and the dedup ledger they share.  Build a new one per
request; nothing in here is safe to share between overlapping requests.
"""

from __future__ import annotations

import logging

from chatadapter.llm.dedup import EmittedToolCalls
from chatadapter.llm.inline_parser import InlineToolCallParser
from chatadapter.llm.reasoning import ReasoningBuffer
from chatadapter.llm.sse import DONE, Frame
from chatadapter.llm.tool_call_assembler import ToolCallAssembler
from chatadapter.llm.types import ResponsePart, StreamDelta, TextPart

logger = logging.getLogger(__name__)

FINISH_REASONS = ("tool_calls", "stop")

# Emitted once between prose and the first structured tool call; the host UI
# otherwise holds back the boundary between the two.
TOOL_CALLS_HINT = " "


class DeltaDispatcher:
    """
    Turn decoded SSE frames into response parts.

    Parameters
    ----------
    show_reasoning:
        When false, the reasoning channel is ignored entirely.
    """

    def __init__(self, show_reasoning: bool = True) -> None:
        self.show_reasoning = show_reasoning
        self.emitted = EmittedToolCalls()
        self.assembler = ToolCallAssembler(self.emitted)
        self.inline = InlineToolCallParser(self.emitted)
        self.reasoning = ReasoningBuffer()
        self._emitted_text = False
        self._hint_sent = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def handle_frame(self, frame: Frame) -> list[ResponsePart]:
        if frame is DONE:
            return self.finish()
        delta = StreamDelta.from_event(frame)
        if delta is None:
            return []
        return self.dispatch(delta)

    def dispatch(self, delta: StreamDelta) -> list[ResponsePart]:
        """
        Handle one event.  Order matters: reasoning is buffered, answer text
        flushes any buffered reasoning before it, then structured tool calls,
        then the finish reason.

        Raises ``ToolCallProtocolError`` when an explicit finish reason leaves
        a tool call with invalid JSON.
        """
        out: list[ResponsePart] = []

        if delta.reasoning and self.show_reasoning:
            self.reasoning.append(delta.reasoning)

        if delta.content:
            out.extend(self._flush_reasoning())
            for part in self.inline.feed(delta.content):
                if isinstance(part, TextPart) and part.value:
                    self._emitted_text = True
                out.append(part)

        if delta.tool_deltas:
            out.extend(self._flush_reasoning())
            if self._emitted_text and not self._hint_sent:
                out.append(TextPart(TOOL_CALLS_HINT))
                self._hint_sent = True
            for td in delta.tool_deltas:
                out.extend(self.assembler.feed(td))

        if delta.finish_reason in FINISH_REASONS:
            out.extend(self.assembler.flush(strict=True))

        return out

    def finish(self) -> list[ResponsePart]:
        """
        ``[DONE]``: flush reasoning, then structured buffers, then the inline
        parser.  Incomplete tool-call JSON is dropped silently here.
        """
        out: list[ResponsePart] = []
        out.extend(self._flush_reasoning())
        out.extend(self.assembler.flush(strict=False))
        out.extend(self.inline.flush())
        return out

    def reset(self) -> None:
        self.emitted.reset()
        self.assembler.reset()
        self.inline.reset()
        self.reasoning.reset()
        self._emitted_text = False
        self._hint_sent = False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _flush_reasoning(self) -> list[ResponsePart]:
        block = self.reasoning.flush(complete=True)
        if block is None:
            return []
        logger.debug("Emitting reasoning block (%d chars)", len(block))
        return [TextPart(block)]
