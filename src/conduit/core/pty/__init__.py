"""Interactive terminal backends and the terminal session registry.

Backends:
    PTYBackend: Pseudo-terminal through a helper run by a Python 3
        interpreter (full terminal emulation)
    FallbackBackend: Plain pipes (limited mode)

Classes:
    Backend: Abstract base class for backends
    SpawnOptions: What to spawn and how
    BackendSelector: Probe for an interpreter once, build backends
    TerminalManager: Registry of interactive sessions plus headless runs

Example:
    >>> from conduit.core.pty import TerminalManager
    >>>
    >>> manager = TerminalManager("/vault", event_sink=transport)
    >>> session = await manager.create_session()
    >>> await manager.write_to_session(session.id, "echo hello\\n")
    >>>
    >>> # Headless: collect output of a short-lived program
    >>> output = await manager.execute_headless("codex", "/status\\nexit\\n", timeout=5.0)
"""

from conduit.core.pty.backend import (
    Backend,
    BackendEvent,
    BackendEventKind,
    BackendType,
    SpawnOptions,
    SubprocessBackend,
)
from conduit.core.pty.fallback_backend import FallbackBackend
from conduit.core.pty.manager import TerminalManager, TerminalSession
from conduit.core.pty.pty_backend import PTYBackend
from conduit.core.pty.selector import (
    BackendSelector,
    find_python,
    select_backend_type,
    verify_python,
)

__all__ = [
    # Backend API
    "Backend",
    "BackendEvent",
    "BackendEventKind",
    "BackendType",
    "SpawnOptions",
    "SubprocessBackend",
    "PTYBackend",
    "FallbackBackend",
    # Selection
    "BackendSelector",
    "select_backend_type",
    "find_python",
    "verify_python",
    # Registry
    "TerminalManager",
    "TerminalSession",
]
