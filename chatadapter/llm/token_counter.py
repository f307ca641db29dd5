"""
Token estimation with a fixed character heuristic.

No tokenizer is involved: text costs ``ceil(len / 4)`` tokens and each image
costs a flat 1500, since image cost does not scale with any text length.
"""

from __future__ import annotations

import json
import math

from chatadapter.llm.normalizer import DEFAULT_MAX_TOOL_RESULT_CHARS, truncate_tool_result
from chatadapter.llm.types import ChatMessage

IMAGE_TOKEN_COST = 1500


def estimate_tokens(text: str) -> int:
    """Return ``ceil(len(text) / 4)``."""
    return math.ceil(len(text) / 4)


class TokenCounter:
    """
    Estimate token counts for text, messages and tool schemas.

    Parameters
    ----------
    max_tool_result_chars:
        Tool results are truncated to this length before they are sent, so
        they are counted after the same truncation.
    """

    def __init__(self, max_tool_result_chars: int = DEFAULT_MAX_TOOL_RESULT_CHARS) -> None:
        self.max_tool_result_chars = max_tool_result_chars

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return estimate_tokens(text)

    def count_message(self, msg: ChatMessage) -> int:
        total = 0
        for text in msg.texts():
            total += self.count_text(text)
        for result in msg.tool_results():
            total += self.count_text(
                truncate_tool_result(result.content, self.max_tool_result_chars)
            )
        total += IMAGE_TOKEN_COST * len(msg.images())
        return total

    def count_messages(self, messages: list[ChatMessage]) -> int:
        return sum(self.count_message(m) for m in messages)

    def count_tools(self, tools: list[dict] | None) -> int:
        """Estimate the cost of the wire tool array by its JSON size."""
        if not tools:
            return 0
        return self.count_text(json.dumps(tools, separators=(",", ":")))

    def count(self, value: str | ChatMessage) -> int:
        """Host token-count query over a raw string or a single message."""
        if isinstance(value, str):
            return self.count_text(value)
        return self.count_message(value)
