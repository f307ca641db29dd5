"""The host's progress sink and helpers around it."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from chatadapter.llm.types import ResponsePart, TextPart, ToolCall

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    def report(self, part: ResponsePart) -> None: ...


class GuardedProgress:
    """
    Forward parts to the host sink, logging instead of propagating sink
    failures so a broken UI callback cannot abort the stream.
    """

    def __init__(self, sink: ProgressSink, model_id: str = "") -> None:
        self._sink = sink
        self._model_id = model_id

    def report(self, part: ResponsePart) -> None:
        try:
            self._sink.report(part)
        except Exception:
            logger.warning(
                "Progress sink failed for model=%s part=%s",
                self._model_id,
                type(part).__name__,
                exc_info=True,
            )


@dataclass
class ResponseCollector:
    """
    A sink that records everything reported to it.

    Used by the CLI to keep assistant turns in history, and by tests.
    """

    parts: list[ResponsePart] = field(default_factory=list)

    def report(self, part: ResponsePart) -> None:
        self.parts.append(part)

    @property
    def text(self) -> str:
        return "".join(p.value for p in self.parts if isinstance(p, TextPart))

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [p for p in self.parts if isinstance(p, ToolCall)]
