"""Core - Pure business logic for driving AI CLI processes.

This module contains no knowledge of:
- Transports or user interfaces
- How events are delivered beyond the EventSink protocol

Architecture:
    parsers/    Line reassembly, stream-json decoding, error classification
    session/    Process orchestrator, permission policy, chat persistence
    pty/        Interactive terminal backends, selector and registry
    config      Settings dataclasses and YAML/env loading
    env         PATH augmentation for spawned processes
    types       Pure data types and events

Example:
    >>> from conduit.core import ProcessOrchestrator, TerminalManager
    >>>
    >>> async def main(sink):
    ...     orchestrator = ProcessOrchestrator(working_dir="/vault", event_sink=sink)
    ...     await orchestrator.send_message("chat-1", "Hello!")
    ...     terminals = TerminalManager("/vault", event_sink=sink)
    ...     await terminals.create_session()
"""

from conduit.core.config import (
    ConduitConfig,
    Permissions,
    TerminalProfile,
    TerminalSettings,
    get_default_profiles,
    load_config,
)
from conduit.core.parsers import LineReassembler, StreamJsonDecoder, classify_error
from conduit.core.pty import BackendSelector, BackendType, TerminalManager
from conduit.core.session import (
    ChatMessage,
    ChatSession,
    PermissionPolicyWriter,
    ProcessOrchestrator,
    SessionStore,
)
from conduit.core.types import (
    AssistantTurn,
    AuthError,
    CompactionNotice,
    Complete,
    ContextUpdate,
    DecodedEvent,
    ErrorKind,
    EventSink,
    EventType,
    GenericError,
    Init,
    PendingMessage,
    RateLimitError,
    Result,
    SessionEvent,
    StreamingText,
    TerminalData,
    TerminalError,
    TerminalExit,
    TokenUsage,
    ToolInvocation,
    ToolResult,
    ToolUse,
)

__all__ = [
    # Config
    "ConduitConfig",
    "Permissions",
    "TerminalProfile",
    "TerminalSettings",
    "get_default_profiles",
    "load_config",
    # Parsers
    "LineReassembler",
    "StreamJsonDecoder",
    "classify_error",
    # Session
    "ProcessOrchestrator",
    "PermissionPolicyWriter",
    "ChatMessage",
    "ChatSession",
    "SessionStore",
    # Terminals
    "TerminalManager",
    "BackendSelector",
    "BackendType",
    # Types
    "ErrorKind",
    "EventType",
    "EventSink",
    "SessionEvent",
    "DecodedEvent",
    "PendingMessage",
    "ToolInvocation",
    "TokenUsage",
    "Init",
    "StreamingText",
    "AssistantTurn",
    "ToolUse",
    "ToolResult",
    "Result",
    "ContextUpdate",
    "CompactionNotice",
    "RateLimitError",
    "AuthError",
    "GenericError",
    "Complete",
    "TerminalData",
    "TerminalExit",
    "TerminalError",
]
