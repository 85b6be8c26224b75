"""Process orchestrator - one CLI process per session, streamed as events.

ProcessOrchestrator spawns the CLI in non-interactive stream-json mode for
every prompt, decodes its stdout into events and republishes them, tagged
with the owning session id, through an EventSink.

Key characteristics:
- At most one live process per session; a new prompt aborts the old run
- Each spawn has its own reassembler and decoder (no cross-talk)
- abort() takes effect immediately; late output of an aborted process is
  drained and discarded
- Every spawn ends with exactly one Complete event

Example:
    >>> transport = InProcessTransport()
    >>> orchestrator = ProcessOrchestrator(working_dir="/vault", event_sink=transport)
    >>> await orchestrator.send_message("chat-1", "Summarize today's notes")
    >>> async for event in transport.events(session_id="chat-1"):
    ...     if event.type == EventType.STREAMING_TEXT:
    ...         render(event.event.text)
    ...     elif event.type == EventType.COMPLETE:
    ...         break
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Sequence
from pathlib import Path

from conduit.core.config import DEFAULT_FILE_GLOBS, ConduitConfig, Permissions
from conduit.core.env import build_spawn_env
from conduit.core.parsers import StreamJsonDecoder, is_auth_error
from conduit.core.parsers.errors import AUTH_REQUIRED_MESSAGE
from conduit.core.session.permissions import PermissionPolicyWriter
from conduit.core.session.table import ProcessHandle, SessionProcessTable
from conduit.core.types import (
    AuthError,
    Complete,
    DecodedEvent,
    ErrorKind,
    EventSink,
    GenericError,
    Init,
    PendingMessage,
    SessionEvent,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024
STDERR_TAIL_CHARS = 2000
OUTPUT_FORMAT_ARGS = ("--output-format", "stream-json", "--verbose")


class ProcessOrchestrator:
    """Run one CLI process per session and stream its events.

    Main methods:
        send_message(session_id, prompt)  Spawn a run (aborting any prior one)
        abort(session_id)                 Terminate a session's run
        abort_all()                       Terminate everything and reset
        set_permissions(permissions)      Rewrite the CLI permission policy
    """

    def __init__(
        self,
        cli_path: str = "claude",
        working_dir: str | Path | None = None,
        config_dir: str = "",
        event_sink: EventSink | None = None,
        permissions: Permissions | None = None,
        file_globs: Sequence[str] = DEFAULT_FILE_GLOBS,
        extra_deny: Sequence[str] = (),
    ) -> None:
        """Initialize orchestrator.

        Args:
            cli_path: CLI executable to spawn.
            working_dir: Working directory for spawned processes.
            config_dir: Host config folder to deny the CLI access to.
            event_sink: Receiver of SessionEvents. Events are dropped if None.
            permissions: Initial capability toggles (not written until
                set_permissions is called).
            file_globs: Note patterns the file toggles apply to.
            extra_deny: Additional policy deny rules.
        """
        self._cli_path = cli_path
        self._working_dir = Path(working_dir or os.getcwd())
        self._config_dir = config_dir
        self._sink = event_sink
        self._permissions = permissions or Permissions()
        self._file_globs = tuple(file_globs)
        self._extra_deny = tuple(extra_deny)
        self._table = SessionProcessTable()
        self._supervisors: set[asyncio.Task[None]] = set()
        self._unreaped: set[ProcessHandle] = set()
        # Spawns still inside create_subprocess_exec. _spawning holds the
        # latest per session; abort and abort_all drop entries to cancel them.
        self._spawning: dict[str, asyncio.Future[None]] = {}
        self._in_flight: set[asyncio.Future[None]] = set()

    @classmethod
    def from_config(cls, config: ConduitConfig, event_sink: EventSink | None = None) -> ProcessOrchestrator:
        """Create an orchestrator from a ConduitConfig."""
        return cls(
            cli_path=config.cli_path,
            working_dir=config.working_dir,
            config_dir=config.config_dir,
            event_sink=event_sink,
            permissions=config.permissions,
            file_globs=config.file_globs,
            extra_deny=config.extra_deny,
        )

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------

    @property
    def cli_path(self) -> str:
        return self._cli_path

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def permissions(self) -> Permissions:
        return self._permissions

    @property
    def table(self) -> SessionProcessTable:
        return self._table

    def set_cli_path(self, path: str) -> None:
        self._cli_path = path

    def set_working_dir(self, directory: str | Path) -> None:
        self._working_dir = Path(directory)

    def set_config_dir(self, directory: str) -> None:
        self._config_dir = directory

    def set_event_sink(self, sink: EventSink | None) -> None:
        self._sink = sink

    def set_permissions(self, permissions: Permissions) -> Path | None:
        """Store toggles and rewrite the policy file.

        Does not touch running processes; the next spawn reads the new file.

        Returns:
            Path of the written file, or None if writing failed.
        """
        self._permissions = permissions
        writer = PermissionPolicyWriter(
            self._working_dir,
            config_dir=self._config_dir,
            file_globs=self._file_globs,
            extra_deny=self._extra_deny,
        )
        try:
            return writer.write(permissions)
        except OSError as e:
            logger.warning("policy_write_failed: path=%s, error=%s", writer.path, e)
            return None

    def build_args(
        self,
        prompt: str,
        remote_session_id: str | None = None,
        model: str | None = None,
    ) -> list[str]:
        """Build CLI arguments for a one-shot prompt run."""
        args = ["-p", prompt, *OUTPUT_FORMAT_ARGS]
        if model:
            args.extend(["--model", model])
        if remote_session_id:
            args.extend(["--resume", remote_session_id])
        return args

    # -------------------------------------------------------------------------
    # Running
    # -------------------------------------------------------------------------

    async def send_message(
        self,
        session_id: str,
        prompt: str,
        remote_session_id: str | None = None,
        model: str | None = None,
    ) -> ProcessHandle | None:
        """Spawn a CLI run for a session.

        Any live run of the same session is aborted first. When
        remote_session_id is omitted, the id the CLI reported on the
        session's last init is used to resume the conversation.

        Args:
            session_id: Caller-assigned session id.
            prompt: Fully resolved prompt text.
            remote_session_id: CLI session to resume.
            model: Optional model override.

        Returns:
            The handle of the spawned process, or None if it failed to
            start (a GenericError and Complete have been emitted) or was
            cancelled while starting (Complete(None) has been emitted).
        """
        if self._table.get_process(session_id) is not None:
            logger.debug("process_superseded: session_id=%s", session_id)
            await self.abort(session_id)

        pending = self._table.start_pending(session_id)
        resume_id = remote_session_id or self._table.get_remote_session_id(session_id)
        args = self.build_args(prompt, resume_id, model)

        logger.debug(
            "process_spawning: session_id=%s, cli=%s, model=%s, resume=%s",
            session_id,
            self._cli_path,
            model,
            resume_id,
        )

        spawning: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._spawning[session_id] = spawning
        self._in_flight.add(spawning)
        try:
            process = await asyncio.create_subprocess_exec(
                self._cli_path,
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self._working_dir),
                env=build_spawn_env(),
            )
        except OSError as e:
            logger.warning("process_spawn_failed: session_id=%s, error=%s", session_id, e)
            await self._emit(
                session_id,
                GenericError(message=f"Failed to start CLI: {e}", kind=ErrorKind.SPAWN_FAILURE),
            )
            await self._emit(session_id, Complete(exit_code=None))
            return None
        finally:
            cancelled = self._spawning.get(session_id) is not spawning
            if not cancelled:
                del self._spawning[session_id]
            self._in_flight.discard(spawning)
            spawning.set_result(None)

        # No interactive input for one-shot runs
        if process.stdin is not None:
            process.stdin.close()

        handle = ProcessHandle(
            session_id=session_id,
            process=process,
            decoder=StreamJsonDecoder(pending),
        )

        if cancelled:
            # Cancelled while starting; the supervisor only reaps it
            handle.terminate()
            logger.debug("process_aborted: session_id=%s, pid=%d, stage=spawn", session_id, process.pid)
            self._start_supervisor(handle)
            await self._emit(session_id, Complete(exit_code=None))
            return None

        self._table.attach(handle)

        logger.debug("process_spawned: session_id=%s, pid=%d", session_id, process.pid)

        self._start_supervisor(handle)
        return handle

    def _start_supervisor(self, handle: ProcessHandle) -> None:
        self._unreaped.add(handle)
        task = asyncio.create_task(self._supervise(handle), name=f"conduit-run-{handle.session_id}")
        self._supervisors.add(task)
        task.add_done_callback(self._supervisors.discard)

    async def abort(self, session_id: str) -> bool:
        """Terminate a session's run.

        Sends SIGTERM (not SIGKILL) so the CLI can clean up, removes the
        table entry and emits Complete(None) before returning. The later
        OS exit notification is ignored. A run still being spawned is
        cancelled instead; its send_message emits the Complete.

        Returns:
            True if a run was aborted or cancelled, False if none was
            running.
        """
        cancelled = self._spawning.pop(session_id, None) is not None
        handle = self._table.detach(session_id)
        if handle is None:
            return cancelled

        handle.terminate()
        logger.debug("process_aborted: session_id=%s, pid=%d", session_id, handle.pid)
        await self._emit(session_id, Complete(exit_code=None))
        return True

    async def abort_all(self) -> None:
        """Abort every run, then forget all remote ids and pending messages.

        Runs still being spawned are cancelled too.
        """
        self._spawning.clear()
        handles = self._table.detach_all()
        for handle in handles:
            handle.terminate()
            logger.debug("process_aborted: session_id=%s, pid=%d", handle.session_id, handle.pid)
            await self._emit(handle.session_id, Complete(exit_code=None))
        self._table.clear()
        logger.debug("all_processes_aborted: count=%d", len(handles))

    async def delete_session(self, session_id: str) -> None:
        """Abort a session's run and forget everything about it."""
        await self.abort(session_id)
        self._table.forget(session_id)

    async def aclose(self, timeout: float = 5.0) -> None:
        """Abort everything and wait for processes to be reaped.

        Spawns in progress are awaited and cancelled. Processes still
        alive after timeout seconds are killed.
        """
        await self.abort_all()
        if self._in_flight:
            # Each cancelled spawn starts its reaper before this wakes up
            await asyncio.wait(set(self._in_flight), timeout=timeout)
        if not self._supervisors:
            return

        _, still_running = await asyncio.wait(set(self._supervisors), timeout=timeout)
        if still_running:
            for handle in list(self._unreaped):
                if not handle.has_exited:
                    logger.warning("process_kill_forced: session_id=%s, pid=%d", handle.session_id, handle.pid)
                    try:
                        handle.process.kill()
                    except ProcessLookupError:
                        pass
            await asyncio.wait(still_running, timeout=timeout)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_remote_session_id(self, session_id: str) -> str | None:
        return self._table.get_remote_session_id(session_id)

    def is_running(self, session_id: str) -> bool:
        return self._table.get_process(session_id) is not None

    def has_any_running(self) -> bool:
        return self._table.has_any_running()

    def running_sessions(self) -> list[str]:
        return self._table.running_sessions()

    def get_pending_message(self, session_id: str) -> PendingMessage | None:
        return self._table.get_pending(session_id)

    def clear_pending_message(self, session_id: str) -> None:
        self._table.clear_pending(session_id)

    def clear_session(self, session_id: str) -> None:
        """Forget the remote session id and pending message.

        The next send_message starts a fresh CLI conversation.
        """
        self._table.forget(session_id)

    # -------------------------------------------------------------------------
    # Stream handling
    # -------------------------------------------------------------------------

    async def _supervise(self, handle: ProcessHandle) -> None:
        """Pump a process's output until it exits, then complete the run."""
        session_id = handle.session_id
        stderr_tail: list[str] = []
        try:
            await asyncio.gather(
                self._read_stdout(handle),
                self._read_stderr(handle, stderr_tail),
            )
            exit_code = await handle.process.wait()
        except asyncio.CancelledError:
            handle.terminate()
            raise
        except Exception:
            logger.exception("supervisor_failed: session_id=%s, pid=%d", session_id, handle.pid)
            handle.terminate()
            if self._table.detach(session_id, handle) is not None:
                await self._emit(session_id, Complete(exit_code=None))
            return
        finally:
            self._unreaped.discard(handle)

        if not self._table.is_current(handle):
            logger.debug("stale_exit_ignored: session_id=%s, pid=%d", session_id, handle.pid)
            return

        tail = handle.lines.flush()
        if tail is not None:
            await self._dispatch(handle, handle.decoder.decode(tail))

        if self._table.detach(session_id, handle) is None:
            # Aborted while the final record was being delivered
            return

        if exit_code != 0:
            logger.warning(
                "process_failed: session_id=%s, exit_code=%s, stderr=%r",
                session_id,
                exit_code,
                "".join(stderr_tail)[-STDERR_TAIL_CHARS:],
            )
        else:
            logger.debug("process_closed: session_id=%s, exit_code=0", session_id)

        await self._emit(session_id, Complete(exit_code=exit_code))

    async def _read_stdout(self, handle: ProcessHandle) -> None:
        stream = handle.process.stdout
        if stream is None:
            return
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            if not self._table.is_current(handle):
                # Aborted: keep draining so the process can exit, drop output
                continue
            for record in handle.lines.feed(chunk):
                await self._dispatch(handle, handle.decoder.decode(record))

    async def _read_stderr(self, handle: ProcessHandle, tail: list[str]) -> None:
        """Watch stderr for authentication failures.

        stderr is diagnostic only; the structured protocol is on stdout.
        """
        stream = handle.process.stderr
        if stream is None:
            return
        auth_reported = False
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = chunk.decode("utf-8", errors="replace")
            tail.append(text)
            logger.debug("process_stderr: session_id=%s, text=%r", handle.session_id, text[:200])
            if auth_reported or not self._table.is_current(handle):
                continue
            if is_auth_error(text):
                auth_reported = True
                await self._emit(handle.session_id, AuthError(message=AUTH_REQUIRED_MESSAGE))

    async def _dispatch(self, handle: ProcessHandle, events: list[DecodedEvent]) -> None:
        for event in events:
            if not self._table.is_current(handle):
                return
            if isinstance(event, Init):
                self._table.set_remote_session_id(handle.session_id, event.remote_session_id)
            await self._emit(handle.session_id, event)

    async def _emit(self, session_id: str, event: DecodedEvent) -> None:
        if self._sink is None:
            return
        await self._sink.emit(SessionEvent(session_id=session_id, event=event))
