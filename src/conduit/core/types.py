"""Pure data types for conduit.core.

These are simple dataclasses with no behavior coupling. Decoded events are
frozen; the only mutable record is PendingMessage, which accumulates the
output of one in-flight spawn.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, ClassVar, Protocol


class ErrorKind(Enum):
    """Failure taxonomy for spawned CLI runs."""

    SPAWN_FAILURE = "spawn_failure"
    AUTHENTICATION_REQUIRED = "authentication_required"
    RATE_LIMITED = "rate_limited"
    MALFORMED_RECORD = "malformed_record"
    PROCESS_EXIT_ERROR = "process_exit_error"
    GENERIC = "generic"


class EventType(Enum):
    """Types of events emitted by the orchestrator and terminal manager."""

    # Stream protocol
    INIT = auto()
    STREAMING_TEXT = auto()
    ASSISTANT_TURN = auto()
    TOOL_USE = auto()
    TOOL_RESULT = auto()
    RESULT = auto()
    CONTEXT_UPDATE = auto()
    COMPACTION_NOTICE = auto()

    # Errors
    RATE_LIMIT_ERROR = auto()
    AUTH_ERROR = auto()
    GENERIC_ERROR = auto()

    # Lifecycle
    COMPLETE = auto()

    # Interactive terminals
    TERMINAL_DATA = auto()
    TERMINAL_EXIT = auto()
    TERMINAL_ERROR = auto()


@dataclass(frozen=True)
class ToolInvocation:
    """A tool_use block from an assistant message.

    Attributes:
        id: Tool use identifier (matches tool_result.tool_use_id).
        name: Tool name, e.g. "Read" or "WebSearch".
        input: Tool arguments as sent by the model.
        result: Tool result content. PendingMessage.set_tool_result swaps
            in a copy carrying it when a tool_result arrives.
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    result: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {"id": self.id, "name": self.name, "input": self.input, "result": self.result}


@dataclass(frozen=True)
class TokenUsage:
    """Token counters from a result record. Missing counters are zero."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0

    @property
    def total(self) -> int:
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_read_input_tokens
            + self.cache_creation_input_tokens
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TokenUsage:
        """Build usage from a wire payload, defaulting absent fields to 0."""
        data = data or {}

        def _int(key: str) -> int:
            value = data.get(key)
            return value if isinstance(value, int) else 0

        return cls(
            input_tokens=_int("input_tokens"),
            output_tokens=_int("output_tokens"),
            cache_read_input_tokens=_int("cache_read_input_tokens"),
            cache_creation_input_tokens=_int("cache_creation_input_tokens"),
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_read_input_tokens": self.cache_read_input_tokens,
            "cache_creation_input_tokens": self.cache_creation_input_tokens,
        }


@dataclass
class PendingMessage:
    """In-progress accumulation of one spawn's streamed text and tools."""

    text: str = ""
    tools: list[ToolInvocation] = field(default_factory=list)

    def find_tool(self, tool_use_id: str) -> ToolInvocation | None:
        for tool in self.tools:
            if tool.id == tool_use_id:
                return tool
        return None

    def set_tool_result(self, tool_use_id: str, result: str) -> ToolInvocation | None:
        """Replace a tool with a copy carrying its result.

        Returns:
            The updated invocation, or None if the id is unknown.
        """
        for i, tool in enumerate(self.tools):
            if tool.id == tool_use_id:
                self.tools[i] = replace(tool, result=result)
                return self.tools[i]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "tools": [t.to_dict() for t in self.tools]}


# =============================================================================
# Decoded events
# =============================================================================


@dataclass(frozen=True)
class Init:
    """The CLI announced its (remote) session id."""

    type: ClassVar[EventType] = EventType.INIT

    remote_session_id: str


@dataclass(frozen=True)
class StreamingText:
    """Full assistant text accumulated so far (never a delta)."""

    type: ClassVar[EventType] = EventType.STREAMING_TEXT

    text: str


@dataclass(frozen=True)
class AssistantTurn:
    """An assistant record that carried text, as received."""

    type: ClassVar[EventType] = EventType.ASSISTANT_TURN

    message: dict[str, Any]


@dataclass(frozen=True)
class ToolUse:
    type: ClassVar[EventType] = EventType.TOOL_USE

    invocation: ToolInvocation


@dataclass(frozen=True)
class ToolResult:
    type: ClassVar[EventType] = EventType.TOOL_RESULT

    tool_use_id: str
    content: str


@dataclass(frozen=True)
class Result:
    """Final result record of a run."""

    type: ClassVar[EventType] = EventType.RESULT

    raw: dict[str, Any]
    is_error: bool

    @property
    def text(self) -> str | None:
        value = self.raw.get("result")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class ContextUpdate:
    type: ClassVar[EventType] = EventType.CONTEXT_UPDATE

    usage: TokenUsage = field(default_factory=TokenUsage)


@dataclass(frozen=True)
class CompactionNotice:
    """The CLI compacted its conversation context."""

    type: ClassVar[EventType] = EventType.COMPACTION_NOTICE

    trigger: str | None
    pre_tokens: int = 0


@dataclass(frozen=True)
class RateLimitError:
    """Account or API limit reached. Retryable once the limit resets."""

    type: ClassVar[EventType] = EventType.RATE_LIMIT_ERROR

    message: str
    reset_hint: str | None = None

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.RATE_LIMITED


@dataclass(frozen=True)
class AuthError:
    """The CLI needs the user to log in again."""

    type: ClassVar[EventType] = EventType.AUTH_ERROR

    message: str

    @property
    def kind(self) -> ErrorKind:
        return ErrorKind.AUTHENTICATION_REQUIRED


@dataclass(frozen=True)
class GenericError:
    type: ClassVar[EventType] = EventType.GENERIC_ERROR

    message: str
    kind: ErrorKind = ErrorKind.GENERIC


@dataclass(frozen=True)
class Complete:
    """A spawn ended. exit_code is None when it was aborted or never started."""

    type: ClassVar[EventType] = EventType.COMPLETE

    exit_code: int | None = None


@dataclass(frozen=True)
class TerminalData:
    type: ClassVar[EventType] = EventType.TERMINAL_DATA

    data: str


@dataclass(frozen=True)
class TerminalExit:
    type: ClassVar[EventType] = EventType.TERMINAL_EXIT

    exit_code: int | None


@dataclass(frozen=True)
class TerminalError:
    type: ClassVar[EventType] = EventType.TERMINAL_ERROR

    message: str


DecodedEvent = (
    Init
    | StreamingText
    | AssistantTurn
    | ToolUse
    | ToolResult
    | Result
    | ContextUpdate
    | CompactionNotice
    | RateLimitError
    | AuthError
    | GenericError
    | Complete
)

TerminalEvent = TerminalData | TerminalExit | TerminalError


@dataclass(frozen=True)
class SessionEvent:
    """An event tagged with the session that produced it.

    Attributes:
        session_id: Owning session identifier.
        event: The decoded or terminal event.
        timestamp: When the event was emitted.
    """

    session_id: str
    event: DecodedEvent | TerminalEvent
    timestamp: float = field(default_factory=time.time)

    @property
    def type(self) -> EventType:
        return self.event.type


class EventSink(Protocol):
    """Protocol for event consumers.

    The orchestrator and terminal manager emit events through this
    interface. Transport layers implement it to receive events.
    """

    async def emit(self, event: SessionEvent) -> None:
        """Emit an event.

        Args:
            event: The event to emit.
        """
        ...
