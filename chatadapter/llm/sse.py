"""
Server-Sent Events frame reader.

Each SSE event has the form::

    data: {json}\\n\\n

and the sentinel ``data: [DONE]`` ends the turn.  Network reads may split a
frame (or a multi-byte UTF-8 character) anywhere, so bytes go through an
incremental decoder and the trailing partial line is held back until the next
read completes it.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator
from typing import Union

from chatadapter.cancellation import CancellationToken, run_cancellable

logger = logging.getLogger(__name__)


class _Done:
    """Marker for the ``[DONE]`` sentinel; compare with ``is DONE``."""

    def __repr__(self) -> str:
        return "DONE"


DONE = _Done()

Frame = Union[dict, _Done]


class SSEFrameReader:
    """Incremental byte-to-frame decoder.  Feed bytes, get decoded frames."""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, data: bytes) -> list[Frame]:
        self._buffer += self._decoder.decode(data)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        return [f for f in (self._parse_line(line) for line in lines) if f is not None]

    def close(self) -> list[Frame]:
        """Flush the decoder and parse a final unterminated line, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        line, self._buffer = self._buffer, ""
        frame = self._parse_line(line)
        return [frame] if frame is not None else []

    @staticmethod
    def _parse_line(line: str) -> Frame | None:
        line = line.rstrip("\r")
        if not line.startswith("data:"):
            # Blank keep-alives, comments, event/id fields.
            return None

        data_str = line[len("data:"):].strip()
        if data_str == "[DONE]":
            return DONE

        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed SSE data: %s", data_str[:200])
            return None
        if not isinstance(data, dict):
            logger.debug("Skipping non-object SSE data: %s", data_str[:200])
            return None
        return data


async def iter_frames(
    chunks: AsyncIterable[bytes],
    token: CancellationToken | None = None,
) -> AsyncIterator[Frame]:
    """
    Yield frames from a byte stream until it ends.

    *token* is checked at every read boundary; a pending read is abandoned
    as soon as it fires.
    """
    reader = SSEFrameReader()
    iterator = chunks.__aiter__()
    while True:
        try:
            raw = await run_cancellable(iterator.__anext__(), token)
        except StopAsyncIteration:
            break
        for frame in reader.feed(raw):
            yield frame
    for frame in reader.close():
        yield frame
