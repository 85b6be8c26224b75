"""Tests for FallbackBackend (plain pipes)."""

from __future__ import annotations

import sys

import pytest

from conduit.core.pty.backend import BackendEvent, BackendEventKind, SpawnOptions
from conduit.core.pty.fallback_backend import FallbackBackend

ECHO_STDIN = "import sys; sys.stdout.write(sys.stdin.readline().upper()); sys.stdout.flush()"


def python_options(code: str) -> SpawnOptions:
    return SpawnOptions(shell=sys.executable, args=["-c", code])


class Recorder:
    """Listener collecting backend events."""

    def __init__(self):
        self.events: list[BackendEvent] = []

    async def __call__(self, event: BackendEvent) -> None:
        self.events.append(event)

    @property
    def output(self) -> str:
        return "".join(e.data for e in self.events if e.kind is BackendEventKind.DATA)

    @property
    def exits(self) -> list[int | None]:
        return [e.exit_code for e in self.events if e.kind is BackendEventKind.EXIT]


class TestFallbackBackend:
    """Tests for spawning, writing and exit reporting."""

    @pytest.mark.asyncio
    async def test_output_and_exit(self):
        backend = FallbackBackend()
        recorder = Recorder()
        backend.add_listener(recorder)

        await backend.spawn(python_options("print('hello'); raise SystemExit(4)"))
        exit_code = await backend.wait()

        assert exit_code == 4
        assert recorder.output.strip() == "hello"
        assert recorder.exits == [4]
        assert recorder.events[-1].kind is BackendEventKind.EXIT
        assert not backend.is_running

    @pytest.mark.asyncio
    async def test_stderr_is_shown(self):
        backend = FallbackBackend()
        recorder = Recorder()
        backend.add_listener(recorder)

        await backend.spawn(python_options("import sys; sys.stderr.write('oops\\n')"))
        await backend.wait()

        assert "oops" in recorder.output

    @pytest.mark.asyncio
    async def test_write(self):
        backend = FallbackBackend()
        recorder = Recorder()
        backend.add_listener(recorder)

        await backend.spawn(python_options(ECHO_STDIN))
        assert backend.is_running
        assert backend.pid is not None
        await backend.write("shout\n")
        await backend.wait()

        assert recorder.output.strip() == "SHOUT"

    @pytest.mark.asyncio
    async def test_plain_function_listener(self):
        backend = FallbackBackend()
        seen: list[BackendEventKind] = []
        backend.add_listener(lambda event: seen.append(event.kind))

        await backend.spawn(python_options("pass"))
        await backend.wait()

        assert seen == [BackendEventKind.EXIT]

    @pytest.mark.asyncio
    async def test_removed_listener_not_called(self):
        backend = FallbackBackend()
        recorder = Recorder()
        backend.add_listener(recorder)
        backend.remove_listener(recorder)

        await backend.spawn(python_options("print('x')"))
        await backend.wait()

        assert recorder.events == []

    @pytest.mark.asyncio
    async def test_kill(self):
        backend = FallbackBackend()
        recorder = Recorder()
        backend.add_listener(recorder)

        await backend.spawn(python_options("import time; time.sleep(30)"))
        backend.kill()
        exit_code = await backend.wait()

        assert exit_code != 0
        assert len(recorder.exits) == 1
        # Killing twice is harmless
        backend.kill()

    @pytest.mark.asyncio
    async def test_resize_is_noop(self):
        backend = FallbackBackend()
        await backend.spawn(python_options("pass"))

        await backend.resize(100, 30)
        await backend.wait()

    @pytest.mark.asyncio
    async def test_write_before_spawn_raises(self):
        with pytest.raises(RuntimeError, match="not started"):
            await FallbackBackend().write("x")

    @pytest.mark.asyncio
    async def test_spawn_twice_raises(self):
        backend = FallbackBackend()
        await backend.spawn(python_options("pass"))

        with pytest.raises(RuntimeError, match="already spawned"):
            await backend.spawn(python_options("pass"))
        await backend.wait()

    @pytest.mark.asyncio
    async def test_spawn_missing_executable(self, tmp_path):
        with pytest.raises(OSError):
            await FallbackBackend().spawn(SpawnOptions(shell=str(tmp_path / "missing")))

    @pytest.mark.asyncio
    async def test_wait_without_spawn(self):
        assert await FallbackBackend().wait() is None
