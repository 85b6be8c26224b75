"""Conduit - Multi-session orchestration for AI CLI processes.

Conduit spawns an AI CLI once per prompt in stream-json mode, decodes its
output into typed events and republishes them per session. It also runs
interactive shells behind a pseudo-terminal (or plain pipes when no
Python 3 interpreter is available) and executes short commands headlessly.

Layers:
    core/       Pure business logic (parsers, sessions, terminals)
    transport/  Event delivery (in-process)
    frontends/  User interfaces (CLI)

Quick Start:
    >>> from conduit import ProcessOrchestrator, EventType
    >>> from conduit.transport import InProcessTransport
    >>>
    >>> transport = InProcessTransport()
    >>> orchestrator = ProcessOrchestrator(working_dir="/vault", event_sink=transport)
    >>> await orchestrator.send_message("chat-1", "What changed today?")
    >>> while (event := await transport.next_event(timeout=60)) is not None:
    ...     if event.type == EventType.COMPLETE:
    ...         break

With composition:
    >>> from conduit.compose import create_standalone
    >>> app = create_standalone()
    >>> await app.orchestrator.send_message("chat-1", "Hello")
"""

from conduit.__version__ import __version__

# Re-export core for convenience
from conduit.core import (
    ConduitConfig,
    ErrorKind,
    EventType,
    Permissions,
    ProcessOrchestrator,
    SessionEvent,
    TerminalManager,
    load_config,
)

__all__ = [
    "__version__",
    # Config
    "ConduitConfig",
    "Permissions",
    "load_config",
    # Orchestration
    "ProcessOrchestrator",
    "TerminalManager",
    # Types
    "ErrorKind",
    "EventType",
    "SessionEvent",
]
