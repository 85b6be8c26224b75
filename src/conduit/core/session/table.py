"""Session process table.

Maps a caller-assigned session id to its live process, the remote session
id the CLI reported (for --resume) and the pending message of the current
spawn. The table itself does not enforce the one-process-per-session rule;
the orchestrator does, by aborting before it attaches a new handle.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from conduit.core.parsers import LineReassembler, StreamJsonDecoder
from conduit.core.types import PendingMessage

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class ProcessHandle:
    """One spawned CLI process and its per-stream parsing state.

    Attributes:
        session_id: Owning session.
        process: The OS process.
        lines: Reassembler for this process's stdout.
        decoder: Decoder folding records into the pending message.
        started_at: Monotonic spawn time.
    """

    session_id: str
    process: asyncio.subprocess.Process
    lines: LineReassembler = field(default_factory=LineReassembler)
    decoder: StreamJsonDecoder = field(default_factory=StreamJsonDecoder)
    started_at: float = field(default_factory=time.monotonic)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def has_exited(self) -> bool:
        return self.process.returncode is not None

    def terminate(self) -> None:
        """Ask the process to exit (SIGTERM). Safe if it already exited."""
        if self.has_exited:
            return
        try:
            self.process.terminate()
        except ProcessLookupError:
            # Exited between the check and the signal
            pass

    def __repr__(self) -> str:
        return f"ProcessHandle(session_id={self.session_id!r}, pid={self.pid})"


@dataclass
class SessionProcessTable:
    """Per-session process, remote-id and pending-message maps.

    Mutated only by the owning orchestrator from the event loop thread.
    """

    _processes: dict[str, ProcessHandle] = field(default_factory=dict)
    _remote_session_ids: dict[str, str] = field(default_factory=dict)
    _pending: dict[str, PendingMessage] = field(default_factory=dict)

    # -------------------------------------------------------------------------
    # Processes
    # -------------------------------------------------------------------------

    def get_process(self, session_id: str) -> ProcessHandle | None:
        return self._processes.get(session_id)

    def attach(self, handle: ProcessHandle) -> None:
        """Register the live process for its session.

        Raises:
            RuntimeError: If the session already has a live process.
        """
        existing = self._processes.get(handle.session_id)
        if existing is not None and existing is not handle:
            raise RuntimeError(f"Session '{handle.session_id}' already has a live process")
        self._processes[handle.session_id] = handle

    def detach(self, session_id: str, handle: ProcessHandle | None = None) -> ProcessHandle | None:
        """Remove and return the session's process entry.

        Args:
            session_id: The session.
            handle: If given, only remove the entry when it is this handle,
                so a superseded process cannot evict its successor.

        Returns:
            The removed handle, or None if nothing was removed.
        """
        current = self._processes.get(session_id)
        if current is None or (handle is not None and current is not handle):
            return None
        del self._processes[session_id]
        return current

    def is_current(self, handle: ProcessHandle) -> bool:
        """Whether handle is still the live process of its session."""
        return self._processes.get(handle.session_id) is handle

    def running_sessions(self) -> list[str]:
        return list(self._processes)

    def has_any_running(self) -> bool:
        return bool(self._processes)

    def detach_all(self) -> list[ProcessHandle]:
        handles = list(self._processes.values())
        self._processes.clear()
        return handles

    # -------------------------------------------------------------------------
    # Remote session ids
    # -------------------------------------------------------------------------

    def get_remote_session_id(self, session_id: str) -> str | None:
        return self._remote_session_ids.get(session_id)

    def set_remote_session_id(self, session_id: str, remote_session_id: str) -> None:
        self._remote_session_ids[session_id] = remote_session_id

    # -------------------------------------------------------------------------
    # Pending messages
    # -------------------------------------------------------------------------

    def start_pending(self, session_id: str) -> PendingMessage:
        """Replace the session's pending message with a fresh one."""
        pending = PendingMessage()
        self._pending[session_id] = pending
        return pending

    def get_pending(self, session_id: str) -> PendingMessage | None:
        return self._pending.get(session_id)

    def clear_pending(self, session_id: str) -> None:
        self._pending.pop(session_id, None)

    # -------------------------------------------------------------------------
    # Reset
    # -------------------------------------------------------------------------

    def forget(self, session_id: str) -> None:
        """Drop the remote id and pending message of a session."""
        self._remote_session_ids.pop(session_id, None)
        self._pending.pop(session_id, None)
        logger.debug("session_forgotten: session_id=%s", session_id)

    def clear(self) -> None:
        """Drop everything except live processes (see detach_all)."""
        self._remote_session_ids.clear()
        self._pending.clear()
