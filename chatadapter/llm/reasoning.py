"""Buffer and render the reasoning ("thinking") side-channel."""

from __future__ import annotations

HEADER_COMPLETE = "> **🧠 Thinking Process**"
HEADER_IN_PROGRESS = "> *🧠 Thinking...*"
SEPARATOR = "---"


def format_reasoning(content: str, complete: bool = True) -> str:
    """
    Render reasoning as a block quote.

    Every line gets a ``> `` prefix, the header says whether thinking is
    complete, and a horizontal rule closes the block so following answer text
    starts clean.
    """
    normalized = content.replace("\r\n", "\n").strip()
    quoted = "\n".join(f"> {line}" for line in normalized.split("\n"))
    header = HEADER_COMPLETE if complete else HEADER_IN_PROGRESS
    return f"{header}\n>\n{quoted}\n\n{SEPARATOR}\n\n"


class ReasoningBuffer:
    """Holds reasoning fragments until a turn boundary flushes them as one block."""

    def __init__(self) -> None:
        self._parts: list[str] = []

    def __bool__(self) -> bool:
        return any(self._parts)

    def append(self, text: str) -> None:
        if text:
            self._parts.append(text)

    def flush(self, complete: bool = True) -> str | None:
        """Return the formatted block and clear the buffer; ``None`` if empty."""
        content = "".join(self._parts)
        self._parts.clear()
        if not content.strip():
            return None
        return format_reasoning(content, complete)

    def reset(self) -> None:
        self._parts.clear()
