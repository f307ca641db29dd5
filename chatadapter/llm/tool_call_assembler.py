"""
Assembles streaming tool-call deltas into complete ToolCall objects.

Design goals:
  - Accumulate ``RawToolDelta`` fragments keyed by ``call_index``.
  - Emit a call as soon as it has a name and its arguments parse as a JSON
    object; do not wait for the end of the turn.
  - Once an index is emitted it is *completed*: later deltas for it are
    ignored, in case the upstream repeats a finished call.
  - ``flush()`` finalizes what is left.  In lenient mode (end of stream)
    unparseable buffers are dropped; in strict mode (explicit finish reason)
    they raise ``ToolCallProtocolError``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from chatadapter.errors import ToolCallProtocolError
from chatadapter.llm.dedup import STRUCTURED, EmittedToolCalls
from chatadapter.llm.types import (
    ParseOutcome,
    RawToolDelta,
    ToolCall,
    new_call_id,
    parse_json_object,
)

logger = logging.getLogger(__name__)

UNKNOWN_TOOL = "unknown_tool"


@dataclass
class _Buffer:
    id: str | None = None
    name: str = ""
    args: str = ""


class ToolCallAssembler:
    """Buffers raw tool-call deltas and emits finished ``ToolCall`` objects."""

    def __init__(self, emitted: EmittedToolCalls | None = None) -> None:
        self._buf: dict[int, _Buffer] = {}
        self._completed: set[int] = set()
        self._emitted = emitted if emitted is not None else EmittedToolCalls()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def pending(self) -> bool:
        return bool(self._buf)

    def is_completed(self, idx: int) -> bool:
        return idx in self._completed

    def feed(self, delta: RawToolDelta) -> list[ToolCall]:
        """
        Feed a single ``RawToolDelta`` into the assembler.

        Returns the call for this index if it just became ready, else ``[]``.
        """
        idx = delta.call_index
        if idx in self._completed:
            return []

        buf = self._buf.setdefault(idx, _Buffer())
        if delta.id and not buf.id:
            buf.id = delta.id
        if delta.name_delta:
            buf.name += delta.name_delta
        if delta.args_delta:
            buf.args += delta.args_delta

        if not buf.name.strip() or not buf.args.strip():
            return []
        outcome = parse_json_object(buf.args)
        if not outcome.complete:
            return []
        return self._finalize(idx, outcome)

    def flush(self, *, strict: bool = False) -> list[ToolCall]:
        """
        Finalize *all* remaining buffers.

        With *strict*, any buffer that is not a complete JSON object (an empty
        one included) raises before anything is emitted.
        """
        outcomes: dict[int, ParseOutcome] = {}
        for idx in sorted(self._buf):
            raw_args = self._buf[idx].args
            outcome = parse_json_object(raw_args)
            if not outcome.complete and strict:
                snippet = raw_args[:200]
                logger.error(
                    "Invalid JSON for tool call idx=%d status=%s snippet=%s",
                    idx,
                    outcome.status.value,
                    snippet,
                )
                raise ToolCallProtocolError(
                    f"Invalid JSON for tool call at index {idx}: {outcome.error}",
                    index=idx,
                    snippet=snippet,
                )
            outcomes[idx] = outcome

        calls: list[ToolCall] = []
        for idx, outcome in outcomes.items():
            if not outcome.complete:
                logger.debug(
                    "Dropping incomplete tool call idx=%d at end of stream", idx
                )
                del self._buf[idx]
                continue
            calls.extend(self._finalize(idx, outcome))
        return calls

    def reset(self) -> None:
        """Discard all accumulated state."""
        self._buf.clear()
        self._completed.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _finalize(self, idx: int, outcome: ParseOutcome) -> list[ToolCall]:
        buf = self._buf.pop(idx)
        self._completed.add(idx)

        name = buf.name.strip() or UNKNOWN_TOOL
        args = outcome.value or {}
        refs = (str(idx), buf.id) if buf.id else (str(idx),)
        if not self._emitted.claim(name, args, refs=refs, source=STRUCTURED):
            return []
        return [ToolCall(id=buf.id or new_call_id(), name=name, arguments=args)]
