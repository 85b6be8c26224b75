"""Tests for StreamJsonDecoder.

Records mirror what the CLI prints with --output-format stream-json.
"""

import json

import pytest

from conduit.core.parsers import StreamJsonDecoder
from conduit.core.types import (
    AssistantTurn,
    CompactionNotice,
    ContextUpdate,
    ErrorKind,
    EventType,
    GenericError,
    Init,
    PendingMessage,
    RateLimitError,
    Result,
    StreamingText,
    TokenUsage,
    ToolResult,
    ToolUse,
)


def line(**fields) -> str:
    return json.dumps(fields)


def assistant(*blocks, message_id=None) -> str:
    message = {"role": "assistant", "content": list(blocks)}
    if message_id:
        message["id"] = message_id
    return line(type="assistant", message=message)


def text_block(text):
    return {"type": "text", "text": text}


def types(events):
    return [e.type for e in events]


@pytest.fixture
def decoder():
    return StreamJsonDecoder()


class TestMalformedRecords:
    """Records that must decode to nothing."""

    @pytest.mark.parametrize(
        "record",
        [
            "",
            "   ",
            "not json",
            '{"type": "assistant", "message": ',
            "[1, 2, 3]",
            '"just a string"',
            '{"type": "mystery"}',
            '{"no_type": true}',
            '{"type": "assistant"}',
            '{"type": "error", "error": "flat string"}',
        ],
    )
    def test_yields_nothing(self, decoder, record):
        assert decoder.decode(record) == []

    def test_malformed_does_not_disturb_state(self, decoder):
        """A bad record between good ones changes nothing."""
        decoder.decode(assistant(text_block("Hi"), message_id="m1"))
        decoder.decode("garbage")
        assert decoder.pending.text == "Hi"


class TestSystemRecords:
    """Tests for system/init and system/compact_boundary."""

    def test_init(self, decoder):
        events = decoder.decode(line(type="system", subtype="init", session_id="abc-123", tools=["Read"]))
        assert events == [Init(remote_session_id="abc-123")]
        assert decoder.remote_session_id == "abc-123"

    def test_init_without_session_id(self, decoder):
        assert decoder.decode(line(type="system", subtype="init")) == []
        assert decoder.remote_session_id is None

    def test_compact_boundary(self, decoder):
        events = decoder.decode(
            line(
                type="system",
                subtype="compact_boundary",
                compact_metadata={"trigger": "auto", "pre_tokens": 155000},
            )
        )
        assert events == [CompactionNotice(trigger="auto", pre_tokens=155000)]

    def test_compact_boundary_without_metadata(self, decoder):
        assert decoder.decode(line(type="system", subtype="compact_boundary")) == [
            CompactionNotice(trigger=None, pre_tokens=0)
        ]

    def test_other_subtype_ignored(self, decoder):
        assert decoder.decode(line(type="system", subtype="hook_response")) == []


class TestAssistantRecords:
    """Tests for assistant text and tool_use blocks."""

    def test_text_emits_turn_then_streaming_text(self, decoder):
        events = decoder.decode(assistant(text_block("Hello"), message_id="m1"))

        assert types(events) == [EventType.ASSISTANT_TURN, EventType.STREAMING_TEXT]
        assert isinstance(events[0], AssistantTurn)
        assert events[0].message["type"] == "assistant"
        assert events[1] == StreamingText(text="Hello")
        assert decoder.pending.text == "Hello"

    def test_string_content_is_text(self, decoder):
        events = decoder.decode(line(type="assistant", message={"content": "Plain"}))
        assert events[-1] == StreamingText(text="Plain")

    def test_streaming_text_is_full_text(self, decoder):
        """Each StreamingText carries everything so far, never a delta."""
        decoder.decode(assistant(text_block("First answer."), message_id="m1"))
        decoder.decode(assistant({"type": "tool_use", "id": "t1", "name": "Read", "input": {}}, message_id="m2"))
        events = decoder.decode(assistant(text_block("Second answer."), message_id="m3"))

        assert events[-1] == StreamingText(text="First answer.\n\nSecond answer.")

    def test_snapshot_of_same_message_replaces(self, decoder):
        """A repeated message id carrying the text so far does not duplicate it."""
        decoder.decode(assistant(text_block("Hel"), message_id="m1"))
        events = decoder.decode(assistant(text_block("Hello"), message_id="m1"))
        assert events[-1] == StreamingText(text="Hello")

    def test_next_block_of_same_message_appends(self, decoder):
        decoder.decode(assistant(text_block("Part one. "), message_id="m1"))
        events = decoder.decode(assistant(text_block("Part two."), message_id="m1"))
        assert events[-1] == StreamingText(text="Part one. Part two.")

    def test_streaming_text_is_monotonic(self, decoder):
        """Successive StreamingText values only ever grow."""
        records = [
            assistant(text_block("A"), message_id="m1"),
            assistant(text_block("AB"), message_id="m1"),
            assistant(text_block("C"), message_id="m2"),
            assistant(text_block("D")),
            assistant(text_block("E")),
        ]
        texts = []
        for record in records:
            texts.extend(e.text for e in decoder.decode(record) if isinstance(e, StreamingText))

        for previous, current in zip(texts, texts[1:]):
            assert current.startswith(previous)
        assert texts[-1] == "AB\n\nC\n\nD\n\nE"

    def test_tool_use(self, decoder):
        events = decoder.decode(
            assistant({"type": "tool_use", "id": "toolu_1", "name": "Read", "input": {"file_path": "a.md"}})
        )

        assert len(events) == 1
        assert isinstance(events[0], ToolUse)
        invocation = events[0].invocation
        assert (invocation.id, invocation.name, invocation.input) == ("toolu_1", "Read", {"file_path": "a.md"})
        assert decoder.pending.tools == [invocation]

    def test_tool_use_before_text_in_same_record(self, decoder):
        events = decoder.decode(
            assistant(
                text_block("Let me look."),
                {"type": "tool_use", "id": "t1", "name": "Glob", "input": {"pattern": "*.md"}},
            )
        )
        assert types(events) == [EventType.TOOL_USE, EventType.ASSISTANT_TURN, EventType.STREAMING_TEXT]

    def test_thinking_only_yields_nothing(self, decoder):
        assert decoder.decode(assistant({"type": "thinking", "thinking": "hmm"})) == []


class TestUserRecords:
    """Tests for tool_result blocks."""

    def test_tool_result_attaches_to_invocation(self, decoder):
        decoder.decode(assistant({"type": "tool_use", "id": "t1", "name": "Read", "input": {}}))
        events = decoder.decode(
            line(
                type="user",
                message={"role": "user", "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "# Notes"}]},
            )
        )

        assert events == [ToolResult(tool_use_id="t1", content="# Notes")]
        assert decoder.pending.find_tool("t1").result == "# Notes"

    def test_emitted_tool_use_is_not_changed_by_result(self, decoder):
        (tool_use,) = decoder.decode(assistant({"type": "tool_use", "id": "t1", "name": "Read", "input": {}}))
        decoder.decode(
            line(
                type="user",
                message={"content": [{"type": "tool_result", "tool_use_id": "t1", "content": "file body"}]},
            )
        )

        assert tool_use.invocation.result is None
        assert decoder.pending.find_tool("t1").result == "file body"
        assert [t.id for t in decoder.pending.tools] == ["t1"]

    def test_result_for_unknown_tool(self):
        pending = PendingMessage()
        assert pending.set_tool_result("missing", "x") is None
        assert pending.tools == []

    def test_tool_result_list_content(self, decoder):
        events = decoder.decode(
            line(
                type="user",
                message={
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": "t9",
                            "content": [{"type": "text", "text": "a"}, {"type": "image"}, {"type": "text", "text": "b"}],
                        }
                    ]
                },
            )
        )
        assert events == [ToolResult(tool_use_id="t9", content="ab")]

    def test_plain_user_text_ignored(self, decoder):
        assert decoder.decode(line(type="user", message={"content": "hello"})) == []


class TestResultRecords:
    """Tests for result records."""

    def test_success(self, decoder):
        events = decoder.decode(
            line(
                type="result",
                subtype="success",
                is_error=False,
                result="Done",
                usage={"input_tokens": 10, "output_tokens": 5, "cache_read_input_tokens": 100},
            )
        )

        assert types(events) == [EventType.RESULT, EventType.CONTEXT_UPDATE]
        assert isinstance(events[0], Result)
        assert events[0].text == "Done"
        assert events[0].is_error is False
        assert events[1] == ContextUpdate(
            usage=TokenUsage(input_tokens=10, output_tokens=5, cache_read_input_tokens=100)
        )
        assert events[1].usage.total == 115

    def test_missing_usage_is_zero(self, decoder):
        events = decoder.decode(line(type="result", is_error=False, result="ok"))
        assert events[-1] == ContextUpdate(usage=TokenUsage())

    def test_usage_limit_is_rate_limit_not_generic(self, decoder):
        events = decoder.decode(
            line(type="result", is_error=True, result="5-hour limit reached ∙ resets 3pm", usage={})
        )

        assert types(events) == [EventType.RATE_LIMIT_ERROR, EventType.RESULT, EventType.CONTEXT_UPDATE]
        assert events[0] == RateLimitError(message="5-hour limit reached ∙ resets 3pm", reset_hint="3pm")
        assert events[0].kind == ErrorKind.RATE_LIMITED
        assert not any(isinstance(e, GenericError) for e in events)

    def test_error_result_is_generic(self, decoder):
        events = decoder.decode(line(type="result", is_error=True, result="Tool execution failed"))

        assert types(events) == [EventType.GENERIC_ERROR, EventType.RESULT, EventType.CONTEXT_UPDATE]
        assert events[0] == GenericError(message="Tool execution failed", kind=ErrorKind.PROCESS_EXIT_ERROR)

    def test_structured_result_kept_raw(self, decoder):
        events = decoder.decode(line(type="result", is_error=False, result={"answer": 42}))
        assert isinstance(events[0].raw["result"], dict)
        assert events[0].text is None


class TestErrorRecords:
    """Tests for top-level error records."""

    def test_rate_limit_by_type(self, decoder):
        events = decoder.decode(
            line(type="error", error={"type": "rate_limit_error", "message": "Slow down, resets 4pm"})
        )
        assert events == [RateLimitError(message="Slow down, resets 4pm", reset_hint="4pm")]

    def test_rate_limit_by_message(self, decoder):
        events = decoder.decode(
            line(type="error", error={"type": "api_error", "message": "Weekly limit reached"})
        )
        assert events == [RateLimitError(message="Weekly limit reached", reset_hint=None)]

    def test_other_error_is_generic(self, decoder):
        events = decoder.decode(line(type="error", error={"type": "overloaded_error", "message": "Overloaded"}))
        assert events == [GenericError(message="Overloaded")]

    def test_error_without_message_uses_type(self, decoder):
        events = decoder.decode(line(type="error", error={"type": "overloaded_error"}))
        assert events == [GenericError(message="overloaded_error")]


class TestPendingMessage:
    """The decoder folds into a caller-supplied PendingMessage."""

    def test_shared_pending(self):
        pending = PendingMessage()
        decoder = StreamJsonDecoder(pending)
        decoder.decode(assistant(text_block("Hi"), message_id="m1"))
        decoder.decode(assistant({"type": "tool_use", "id": "t1", "name": "Read", "input": {}}))

        assert pending.text == "Hi"
        assert [t.name for t in pending.tools] == ["Read"]
        assert pending.to_dict()["tools"][0]["id"] == "t1"

    def test_decoders_are_independent(self):
        first, second = StreamJsonDecoder(), StreamJsonDecoder()
        first.decode(assistant(text_block("one"), message_id="m1"))
        second.decode(assistant(text_block("two"), message_id="m1"))
        assert (first.text, second.text) == ("one", "two")
