"""
Assemble the chat-completions request body.

Caller-supplied model options are untrusted: only allow-listed keys with the
expected types are copied, everything else is dropped.
"""

from __future__ import annotations

import math
from typing import Any

DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.7

_TOOL_CHOICES = ("auto", "none", "required")


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _valid_stop(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, list) and all(isinstance(s, str) for s in value)


def build_request_body(
    model_id: str,
    messages: list[dict],
    *,
    max_output_tokens: int,
    model_options: dict[str, Any] | None = None,
    tools: list[dict] | None = None,
    tool_choice: str | None = None,
    thinking: bool = False,
    default_max_tokens: int = DEFAULT_MAX_TOKENS,
    default_temperature: float = DEFAULT_TEMPERATURE,
) -> dict:
    mo = model_options or {}

    requested_max = mo.get("max_tokens")
    max_tokens = int(requested_max) if _is_number(requested_max) else default_max_tokens
    temperature = mo.get("temperature")

    body: dict[str, Any] = {
        "model": model_id,
        "messages": messages,
        "stream": True,
        "max_tokens": min(max_tokens, max_output_tokens),
        "temperature": temperature if _is_number(temperature) else default_temperature,
    }

    if thinking:
        body["thinking"] = {"type": "enabled"}

    stop = mo.get("stop")
    if stop is not None and _valid_stop(stop):
        body["stop"] = stop
    for key in ("frequency_penalty", "presence_penalty"):
        if _is_number(mo.get(key)):
            body[key] = mo[key]

    if tools:
        body["tools"] = tools
        if tool_choice in _TOOL_CHOICES:
            body["tool_choice"] = tool_choice

    return body
