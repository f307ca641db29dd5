"""
Mock upstream endpoint for testing.

Builds SSE byte streams and serves them through ``httpx.MockTransport`` so
tests can exercise the provider end to end without hitting real APIs.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from chatadapter.llm.types import ImagePart


def sse_event(payload: dict | str) -> bytes:
    """One ``data:`` frame.  Strings are sent verbatim (e.g. ``"[DONE]"``)."""
    data = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {data}\n\n".encode("utf-8")


def delta_event(
    content: str | None = None,
    reasoning: str | None = None,
    tool_calls: list[dict] | None = None,
    finish_reason: str | None = None,
) -> dict:
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if reasoning is not None:
        delta["reasoning_content"] = reasoning
    if tool_calls is not None:
        delta["tool_calls"] = tool_calls
    return {"choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}]}


def tool_delta(
    index: int,
    id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> dict:
    tc: dict[str, Any] = {"index": index, "type": "function", "function": {}}
    if id is not None:
        tc["id"] = id
    if name is not None:
        tc["function"]["name"] = name
    if arguments is not None:
        tc["function"]["arguments"] = arguments
    return tc


def sse_body(*events: dict, done: bool = True) -> bytes:
    body = b"".join(sse_event(e) for e in events)
    if done:
        body += sse_event("[DONE]")
    return body


def split_bytes(data: bytes, *offsets: int) -> list[bytes]:
    """Cut *data* at the given offsets."""
    chunks = []
    prev = 0
    for off in sorted(offsets):
        chunks.append(data[prev:off])
        prev = off
    chunks.append(data[prev:])
    return chunks


class _ChunkedStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


class MockUpstream:
    """
    Records every request and answers with a canned response.

    Usage::

        upstream = MockUpstream(body=sse_body(delta_event(content="hi")))
        provider = OpenAICompatProvider(api_key="k", transport=upstream.transport)

    Parameters
    ----------
    body:
        Response bytes, sent as a single chunk unless *chunks* is given.
    chunks:
        Explicit chunk sequence for the response stream.
    status:
        HTTP status code.
    """

    def __init__(
        self,
        body: bytes = b"",
        chunks: list[bytes] | None = None,
        status: int = 200,
    ) -> None:
        self._chunks = chunks if chunks is not None else [body]
        self._status = status
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        headers = {"content-type": "text/event-stream"} if self._status < 400 else {}
        return httpx.Response(
            self._status, headers=headers, stream=_ChunkedStream(list(self._chunks))
        )


class FakeCaptioner:
    """Returns canned captions and records the prompts it was given."""

    def __init__(self, caption: str = "a cat") -> None:
        self.caption = caption
        self.prompts: list[str] = []
        self.images: list[ImagePart] = []

    async def describe(self, image: ImagePart, prompt: str) -> str:
        self.prompts.append(prompt)
        self.images.append(image)
        return f"{self.caption} #{len(self.images)}"
