"""Terminal session registry and headless execution."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
import shlex
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from conduit.core.config import TerminalProfile, TerminalSettings, get_default_profiles
from conduit.core.env import build_spawn_env, headless_path_dirs
from conduit.core.pty.backend import Backend, BackendEvent, BackendEventKind, BackendType, SpawnOptions
from conduit.core.pty.selector import BackendSelector
from conduit.core.types import EventSink, SessionEvent, TerminalData, TerminalError, TerminalEvent, TerminalExit

logger = logging.getLogger(__name__)

DEFAULT_COLS = 80
DEFAULT_ROWS = 24
HEADLESS_COLS = 120
HEADLESS_ROWS = 40
HEADLESS_SETTLE_DELAY = 0.5
HEADLESS_TIMEOUT = 5.0


@dataclass
class TerminalSession:
    """Registry record for one interactive terminal.

    Attributes:
        id: Session identifier.
        backend_type: Which backend runs it.
        profile: Shell profile it was started with.
        created_at: When it was created.
    """

    id: str
    backend_type: BackendType
    profile: TerminalProfile
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "backendType": self.backend_type.value,
            "profile": self.profile.to_dict(),
            "createdAt": self.created_at.isoformat(),
        }


@dataclass
class _Entry:
    backend: Backend
    session: TerminalSession


class TerminalManager:
    """Manage interactive terminal sessions.

    Terminal output is published through the event sink as TerminalData,
    TerminalExit and TerminalError session events. A session is removed
    from the registry when its process exits or it is killed.

    Example:
        >>> manager = TerminalManager("/vault", event_sink=transport)
        >>> session = await manager.create_session()
        >>> await manager.write_to_session(session.id, "ls\\n")
        >>> await manager.resize_session(session.id, 120, 40)
        >>> manager.kill_all()
        >>>
        >>> # Run a command without a visible terminal
        >>> output = await manager.execute_headless("codex", "/status\\nexit\\n")
    """

    def __init__(
        self,
        working_dir: str | Path,
        settings: TerminalSettings | None = None,
        event_sink: EventSink | None = None,
        selector: BackendSelector | None = None,
    ) -> None:
        """Initialize manager.

        Args:
            working_dir: Directory shells start in.
            settings: Profiles and interpreter override.
            event_sink: Receiver of terminal events.
            selector: Backend selector. Built from settings if None.
        """
        self._working_dir = Path(working_dir)
        self._settings = settings or TerminalSettings()
        self._sink = event_sink
        self._selector = selector or BackendSelector(python_path=self._settings.python_path)
        self._sessions: dict[str, _Entry] = {}

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def settings(self) -> TerminalSettings:
        return self._settings

    @property
    def selector(self) -> BackendSelector:
        return self._selector

    def set_working_dir(self, directory: str | Path) -> None:
        self._working_dir = Path(directory)

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._sink = sink

    def update_settings(self, **changes: Any) -> TerminalSettings:
        """Replace individual settings fields.

        Changing python_path resets interpreter discovery for sessions
        created afterwards.

        Raises:
            TypeError: If a field name is unknown.
        """
        previous_python = self._settings.python_path
        self._settings = dataclasses.replace(self._settings, **changes)
        if self._settings.python_path != previous_python:
            self._selector = BackendSelector(python_path=self._settings.python_path)
            logger.debug("terminal_python_changed: path=%s", self._settings.python_path)
        return self._settings

    def get_profiles(self) -> list[TerminalProfile]:
        return list(self._settings.profiles)

    def get_profile(self, profile_id: str | None = None) -> TerminalProfile:
        """Resolve a profile: the requested one, the default, then the first."""
        wanted = profile_id or self._settings.default_profile
        for profile in self._settings.profiles:
            if profile.id == wanted:
                return profile
        if self._settings.profiles:
            return self._settings.profiles[0]
        return get_default_profiles()[0]

    def is_python_available(self) -> bool:
        """Whether a PTY interpreter was found (False before the first probe)."""
        return self._selector.python_path is not None

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    async def create_session(self, session_id: str | None = None, profile_id: str | None = None) -> TerminalSession:
        """Spawn a shell and register it.

        Args:
            session_id: Session id. Generated if None.
            profile_id: Profile to start. Default profile if None.

        Returns:
            The registered session.

        Raises:
            OSError: If the shell cannot be started.
        """
        session_id = session_id or str(uuid.uuid4())
        profile = self.get_profile(profile_id)
        backend, backend_type = await self._selector.create_backend()

        session = TerminalSession(id=session_id, backend_type=backend_type, profile=profile)

        async def forward(event: BackendEvent) -> None:
            if event.kind is BackendEventKind.DATA:
                await self._emit(session_id, TerminalData(data=event.data))
            elif event.kind is BackendEventKind.EXIT:
                entry = self._sessions.get(session_id)
                if entry is not None and entry.backend is backend:
                    del self._sessions[session_id]
                logger.debug("terminal_exited: session_id=%s, exit_code=%s", session_id, event.exit_code)
                await self._emit(session_id, TerminalExit(exit_code=event.exit_code))
            else:
                await self._emit(session_id, TerminalError(message=event.error or "Terminal error"))

        backend.add_listener(forward)
        await backend.spawn(
            SpawnOptions(
                shell=profile.shell,
                args=list(profile.args),
                cwd=str(self._working_dir),
                env=build_spawn_env(overrides=profile.env),
                cols=DEFAULT_COLS,
                rows=DEFAULT_ROWS,
            )
        )
        self._sessions[session_id] = _Entry(backend=backend, session=session)

        if backend_type is BackendType.FALLBACK:
            logger.warning("terminal_limited_mode: session_id=%s, reason=no_python", session_id)
        logger.debug(
            "terminal_created: session_id=%s, profile=%s, backend=%s",
            session_id,
            profile.id,
            backend_type.value,
        )
        return session

    def get_session(self, session_id: str) -> TerminalSession | None:
        entry = self._sessions.get(session_id)
        return entry.session if entry else None

    def get_backend(self, session_id: str) -> Backend | None:
        entry = self._sessions.get(session_id)
        return entry.backend if entry else None

    def get_active_sessions(self) -> list[TerminalSession]:
        return [entry.session for entry in self._sessions.values()]

    async def write_to_session(self, session_id: str, data: str) -> bool:
        """Write to a session. Returns False for unknown ids."""
        entry = self._sessions.get(session_id)
        if entry is None:
            return False
        await entry.backend.write(data)
        return True

    async def resize_session(self, session_id: str, cols: int, rows: int) -> bool:
        """Resize a session. Returns False for unknown ids."""
        entry = self._sessions.get(session_id)
        if entry is None:
            return False
        await entry.backend.resize(cols, rows)
        return True

    def kill_session(self, session_id: str) -> bool:
        """Kill a session and remove it. Returns False for unknown ids."""
        entry = self._sessions.pop(session_id, None)
        if entry is None:
            return False
        entry.backend.kill()
        logger.debug("terminal_killed: session_id=%s", session_id)
        return True

    def kill_all(self) -> None:
        entries = list(self._sessions.values())
        self._sessions.clear()
        for entry in entries:
            entry.backend.kill()
        logger.debug("terminals_killed: count=%d", len(entries))

    # -------------------------------------------------------------------------
    # Headless
    # -------------------------------------------------------------------------

    async def execute_headless(
        self,
        command: str,
        input: str = "",
        timeout: float = HEADLESS_TIMEOUT,
    ) -> str | None:
        """Run a command in an invisible terminal and collect its output.

        input is written after a short settle delay so the program can
        initialize. The result resolves exactly once: the collected output
        on exit or timeout, None on an error event or spawn failure.

        Args:
            command: Command line, e.g. "codex" (split shell-style).
            input: Text to send, e.g. "/status\\nexit\\n".
            timeout: Seconds, counted from the call, before giving up and
                returning what arrived.

        Returns:
            Collected output (possibly empty), or None on error.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        outcome: asyncio.Future[str | None] = loop.create_future()
        chunks: list[str] = []
        session_id = f"headless-{uuid.uuid4().hex[:12]}"
        writer: asyncio.Task[None] | None = None

        def settle(value: str | None) -> None:
            if not outcome.done():
                outcome.set_result(value)

        def collect(event: BackendEvent) -> None:
            if event.kind is BackendEventKind.DATA:
                chunks.append(event.data)
            elif event.kind is BackendEventKind.EXIT:
                settle("".join(chunks))
            else:
                logger.debug("headless_error: session_id=%s, error=%s", session_id, event.error)
                settle(None)

        try:
            argv = shlex.split(command)
            if not argv:
                raise ValueError("empty command")

            # The first selection probes for an interpreter and counts against
            # the timeout; a shielded probe finishes in the background
            try:
                backend, backend_type = await asyncio.wait_for(
                    asyncio.shield(self._selector.create_backend()), timeout
                )
            except asyncio.TimeoutError:
                logger.debug("headless_timeout: session_id=%s, stage=backend_selection", session_id)
                return ""
            backend.add_listener(collect)
            self._sessions[session_id] = _Entry(
                backend=backend,
                session=TerminalSession(id=session_id, backend_type=backend_type, profile=self.get_profile()),
            )
            await backend.spawn(
                SpawnOptions(
                    shell=argv[0],
                    args=argv[1:],
                    cwd=str(self._working_dir),
                    env=build_spawn_env(extra_dirs=headless_path_dirs()),
                    cols=HEADLESS_COLS,
                    rows=HEADLESS_ROWS,
                )
            )
            logger.debug("headless_started: session_id=%s, command=%s", session_id, argv[0])

            writer = asyncio.create_task(self._write_after(backend, input, HEADLESS_SETTLE_DELAY))

            done, _ = await asyncio.wait({outcome}, timeout=max(0.0, deadline - loop.time()))
            if not done:
                logger.debug("headless_timeout: session_id=%s, collected=%d", session_id, len(chunks))
                settle("".join(chunks))
            return outcome.result()

        except (OSError, ValueError) as e:
            logger.debug("headless_failed: command=%r, error=%s", command, e)
            return None

        finally:
            if writer is not None:
                writer.cancel()
            self.kill_session(session_id)

    async def _write_after(self, backend: Backend, data: str, delay: float) -> None:
        await asyncio.sleep(delay)
        if not data:
            return
        try:
            await backend.write(data)
        except (RuntimeError, OSError) as e:
            logger.debug("headless_write_failed: error=%s", e)

    async def _emit(self, session_id: str, event: TerminalEvent) -> None:
        if self._sink is None:
            return
        await self._sink.emit(SessionEvent(session_id=session_id, event=event))
