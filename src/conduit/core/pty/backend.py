"""Backend protocol for interactive terminal processes.

This module defines the interface that all backends must implement.
Backends spawn a shell (or any command), accept input and resizes, and
report output and exit through listeners.

Available backends:
    - PTYBackend: Pseudo-terminal via a helper script run by a Python 3
      interpreter (full terminal emulation)
    - FallbackBackend: Plain pipes (limited mode, resize is ignored)
"""

from __future__ import annotations

import asyncio
import codecs
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class BackendType(Enum):
    """Available backend types."""

    PTY = "pty"
    FALLBACK = "fallback"


@dataclass
class SpawnOptions:
    """What to spawn and how.

    Attributes:
        shell: Executable to run.
        args: Arguments for the executable.
        cwd: Working directory for the process.
        env: Full environment for the process (None inherits ours).
        cols: Terminal width in columns.
        rows: Terminal height in rows.
    """

    shell: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] | None = None
    cols: int = 80
    rows: int = 24


class BackendEventKind(Enum):
    DATA = "data"
    EXIT = "exit"
    ERROR = "error"


@dataclass(frozen=True)
class BackendEvent:
    """Something a backend reports to its listeners.

    Attributes:
        kind: DATA, EXIT or ERROR.
        data: Output text (DATA).
        exit_code: Process exit code (EXIT).
        error: Error description (ERROR).
    """

    kind: BackendEventKind
    data: str = ""
    exit_code: int | None = None
    error: str | None = None


Listener = Callable[[BackendEvent], Awaitable[None] | None]


class Backend(ABC):
    """Abstract base class for terminal backends.

    A backend manages one process - spawning it, sending input, resizing
    its window and reporting output. Listeners may be plain functions or
    coroutine functions; they are called in registration order.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _dispatch(self, event: BackendEvent) -> None:
        for listener in list(self._listeners):
            result = listener(event)
            if inspect.isawaitable(result):
                await result

    @property
    @abstractmethod
    def is_running(self) -> bool:
        """Whether the process is currently running."""
        ...

    @abstractmethod
    async def spawn(self, options: SpawnOptions) -> None:
        """Start the process.

        Raises:
            OSError: If the process fails to start.
            RuntimeError: If the backend was already spawned.
        """
        ...

    @abstractmethod
    async def write(self, data: str) -> None:
        """Write data to the process.

        Raises:
            RuntimeError: If backend is not started.
        """
        ...

    @abstractmethod
    async def resize(self, cols: int, rows: int) -> None:
        """Resize the terminal window (may be a no-op)."""
        ...

    @abstractmethod
    def kill(self) -> None:
        """Ask the process to exit. Safe to call more than once."""
        ...


class SubprocessBackend(Backend):
    """Backend built on an asyncio subprocess with piped stdio.

    Subclasses provide _launch(); this class pumps stdout and stderr to
    listeners as DATA and reports EXIT once both streams are drained.
    """

    def __init__(self) -> None:
        super().__init__()
        self._process: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        """Process ID of the spawned process."""
        return self._process.pid if self._process else None

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @abstractmethod
    async def _launch(self, options: SpawnOptions) -> asyncio.subprocess.Process:
        """Create the OS process for options."""
        ...

    def _stderr_is_output(self) -> bool:
        """Whether stderr is forwarded as DATA (otherwise only logged)."""
        return True

    async def spawn(self, options: SpawnOptions) -> None:
        if self._process is not None:
            raise RuntimeError("Backend already spawned")

        self._process = await self._launch(options)
        logger.debug(
            "backend_spawned: backend=%s, pid=%d, shell=%s",
            type(self).__name__,
            self._process.pid,
            options.shell,
        )
        self._pump_task = asyncio.create_task(self._pump(self._process))

    async def write(self, data: str) -> None:
        if self._process is None or self._process.stdin is None:
            raise RuntimeError("Backend not started")
        if self._process.stdin.is_closing():
            logger.debug("backend_write_ignored: pid=%d, reason=stdin_closed", self._process.pid)
            return
        self._process.stdin.write(data.encode())
        try:
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.debug("backend_write_failed: pid=%d, error=%s", self._process.pid, e)

    def kill(self) -> None:
        if self._process is None or self._process.returncode is not None:
            return
        try:
            self._process.terminate()
        except ProcessLookupError:
            pass

    async def wait(self) -> int | None:
        """Wait until the process has exited and EXIT was reported.

        Returns:
            Exit code, or None if never spawned.
        """
        if self._pump_task is not None:
            await asyncio.shield(self._pump_task)
        return self._process.returncode if self._process else None

    async def _pump(self, process: asyncio.subprocess.Process) -> None:
        try:
            await asyncio.gather(
                self._read(process.stdout, forward=True),
                self._read(process.stderr, forward=self._stderr_is_output()),
            )
            exit_code = await process.wait()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("backend_pump_failed: pid=%d", process.pid)
            await self._dispatch(BackendEvent(BackendEventKind.ERROR, error=str(e)))
            return

        logger.debug("backend_exited: pid=%d, exit_code=%s", process.pid, exit_code)
        await self._dispatch(BackendEvent(BackendEventKind.EXIT, exit_code=exit_code))

    async def _read(self, stream: asyncio.StreamReader | None, forward: bool) -> None:
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if not text:
                continue
            if forward:
                await self._dispatch(BackendEvent(BackendEventKind.DATA, data=text))
            else:
                logger.debug("backend_stderr: backend=%s, text=%r", type(self).__name__, text[:200])
        tail = decoder.decode(b"", final=True)
        if tail and forward:
            await self._dispatch(BackendEvent(BackendEventKind.DATA, data=tail))
