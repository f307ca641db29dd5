"""Tests for chatadapter.llm.dispatcher.DeltaDispatcher."""

from __future__ import annotations

import pytest

from chatadapter.errors import ToolCallProtocolError
from chatadapter.llm.dispatcher import TOOL_CALLS_HINT, DeltaDispatcher
from chatadapter.llm.inline_parser import (
    TOOL_CALL_ARGUMENT_BEGIN,
    TOOL_CALL_BEGIN,
    TOOL_CALL_END,
)
from chatadapter.llm.reasoning import HEADER_COMPLETE
from chatadapter.llm.sse import DONE
from chatadapter.llm.types import TextPart, ToolCall
from tests.mock_upstream import delta_event, tool_delta


def feed(dispatcher: DeltaDispatcher, *frames) -> list:
    out = []
    for frame in frames:
        out.extend(dispatcher.handle_frame(frame))
    return out


class TestRoundTrip:
    def test_text_then_structured_call(self):
        d = DeltaDispatcher(show_reasoning=False)
        out = feed(
            d,
            delta_event(content="Let me check "),
            delta_event(tool_calls=[tool_delta(0, id="c1", name="lookup", arguments="")]),
            delta_event(tool_calls=[tool_delta(0, arguments='{"q":"x"}')]),
            delta_event(finish_reason="tool_calls"),
        )
        assert out == [
            TextPart("Let me check "),
            TextPart(TOOL_CALLS_HINT),
            ToolCall(id="c1", name="lookup", arguments={"q": "x"}),
        ]

    def test_hint_sent_once(self):
        d = DeltaDispatcher()
        out = feed(
            d,
            delta_event(content="a"),
            delta_event(tool_calls=[tool_delta(0, id="c0", name="x", arguments="{}")]),
            delta_event(tool_calls=[tool_delta(1, id="c1", name="y", arguments="{}")]),
        )
        assert out.count(TextPart(TOOL_CALLS_HINT)) == 1

    def test_no_hint_without_prior_text(self):
        d = DeltaDispatcher()
        out = feed(d, delta_event(tool_calls=[tool_delta(0, id="c0", name="x", arguments="{}")]))
        assert out == [ToolCall(id="c0", name="x", arguments={})]


class TestReasoning:
    def test_reasoning_precedes_answer(self):
        d = DeltaDispatcher(show_reasoning=True)
        out = feed(
            d,
            delta_event(reasoning="thinking "),
            delta_event(reasoning="hard"),
            delta_event(content="Answer"),
            delta_event(content=" here"),
            DONE,
        )
        assert len(out) == 3
        assert out[0].value.startswith(HEADER_COMPLETE)
        assert "> thinking hard" in out[0].value
        assert out[1:] == [TextPart("Answer"), TextPart(" here")]

    def test_reasoning_flushed_at_done(self):
        d = DeltaDispatcher(show_reasoning=True)
        out = feed(d, delta_event(reasoning="only thoughts"), DONE)
        assert len(out) == 1
        assert out[0].value.startswith(HEADER_COMPLETE)

    def test_reasoning_flushed_before_tool_call(self):
        d = DeltaDispatcher(show_reasoning=True)
        out = feed(
            d,
            delta_event(reasoning="plan"),
            delta_event(tool_calls=[tool_delta(0, id="c0", name="x", arguments="{}")]),
        )
        assert isinstance(out[0], TextPart)
        assert isinstance(out[1], ToolCall)

    def test_reasoning_ignored_when_disabled(self):
        d = DeltaDispatcher(show_reasoning=False)
        out = feed(d, delta_event(reasoning="hidden"), delta_event(content="shown"), DONE)
        assert out == [TextPart("shown")]


class TestEndOfTurn:
    def _incomplete_call(self, d: DeltaDispatcher) -> None:
        feed(d, delta_event(tool_calls=[tool_delta(0, id="c0", name="x", arguments='{"a": ')]))

    def test_done_drops_incomplete_call(self):
        d = DeltaDispatcher()
        self._incomplete_call(d)
        assert feed(d, DONE) == []

    def test_finish_reason_raises_on_incomplete_call(self):
        d = DeltaDispatcher()
        self._incomplete_call(d)
        with pytest.raises(ToolCallProtocolError):
            feed(d, delta_event(finish_reason="tool_calls"))

    def test_stop_finish_reason_is_strict_too(self):
        d = DeltaDispatcher()
        self._incomplete_call(d)
        with pytest.raises(ToolCallProtocolError):
            feed(d, delta_event(finish_reason="stop"))

    def test_length_finish_reason_does_not_flush(self):
        d = DeltaDispatcher()
        self._incomplete_call(d)
        assert feed(d, delta_event(finish_reason="length")) == []

    def _name_only_call(self, d: DeltaDispatcher) -> None:
        feed(d, delta_event(tool_calls=[tool_delta(0, id="c0", name="delete_file", arguments="")]))

    def test_done_drops_call_without_arguments(self):
        d = DeltaDispatcher()
        self._name_only_call(d)
        assert feed(d, DONE) == []

    def test_finish_reason_raises_on_call_without_arguments(self):
        d = DeltaDispatcher()
        self._name_only_call(d)
        with pytest.raises(ToolCallProtocolError):
            feed(d, delta_event(finish_reason="tool_calls"))


class TestCrossEncodingDedup:
    INLINE = f"{TOOL_CALL_BEGIN}lookup{TOOL_CALL_ARGUMENT_BEGIN}" + '{"q":"x"}' + TOOL_CALL_END

    def _calls(self, out: list) -> list:
        return [(p.name, p.arguments) for p in out if isinstance(p, ToolCall)]

    def test_inline_then_structured(self):
        d = DeltaDispatcher()
        out = feed(
            d,
            delta_event(content=self.INLINE),
            delta_event(tool_calls=[tool_delta(0, id="c1", name="lookup", arguments='{"q":"x"}')]),
            delta_event(finish_reason="tool_calls"),
            DONE,
        )
        assert self._calls(out) == [("lookup", {"q": "x"})]

    def test_structured_then_inline(self):
        d = DeltaDispatcher()
        out = feed(
            d,
            delta_event(tool_calls=[tool_delta(0, id="c1", name="lookup", arguments='{"q":"x"}')]),
            delta_event(content=self.INLINE),
            DONE,
        )
        assert self._calls(out) == [("lookup", {"q": "x"})]

    def test_indexed_inline_matches_structured_index(self):
        d = DeltaDispatcher()
        inline = f"{TOOL_CALL_BEGIN}lookup:0{TOOL_CALL_ARGUMENT_BEGIN}" + '{"q": "x"}' + TOOL_CALL_END
        out = feed(
            d,
            delta_event(tool_calls=[tool_delta(0, id="c1", name="lookup", arguments='{"q":"x"}')]),
            delta_event(content=inline),
            DONE,
        )
        assert self._calls(out) == [("lookup", {"q": "x"})]


class TestFrames:
    def test_frame_without_choices_ignored(self):
        d = DeltaDispatcher()
        assert d.handle_frame({"id": "x", "usage": {}}) == []

    def test_non_object_delta_skipped(self):
        d = DeltaDispatcher()
        assert d.handle_frame({"choices": [{"delta": "oops"}]}) == []
        assert d.handle_frame(delta_event(content="still here")) == [TextPart("still here")]

    def test_non_object_function_skipped(self):
        d = DeltaDispatcher()
        frame = {"choices": [{"delta": {"tool_calls": [{"index": 0, "function": "x"}]}}]}
        assert d.handle_frame(frame) == []
        out = feed(
            d,
            delta_event(tool_calls=[tool_delta(0, id="c1", name="lookup", arguments='{"q": 1}')]),
        )
        assert [p for p in out if isinstance(p, ToolCall)] == [ToolCall("c1", "lookup", {"q": 1})]

    def test_only_first_choice_honored(self):
        d = DeltaDispatcher()
        frame = {
            "choices": [
                {"index": 0, "delta": {"content": "first"}},
                {"index": 1, "delta": {"content": "second"}},
            ]
        }
        assert d.handle_frame(frame) == [TextPart("first")]

    def test_reset_clears_state(self):
        d = DeltaDispatcher()
        feed(d, delta_event(content="a"), delta_event(tool_calls=[tool_delta(0, id="c", name="x")]))
        d.reset()
        assert d.finish() == []
        assert len(d.emitted) == 0
