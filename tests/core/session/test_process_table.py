"""Tests for SessionProcessTable and ProcessHandle."""

from __future__ import annotations

import pytest

from conduit.core.session import ProcessHandle, SessionProcessTable


class FakeProcess:
    """Stands in for asyncio.subprocess.Process."""

    def __init__(self, pid: int = 4242, returncode: int | None = None) -> None:
        self.pid = pid
        self.returncode = returncode
        self.terminated = 0

    def terminate(self) -> None:
        self.terminated += 1


def make_handle(session_id: str = "s1", pid: int = 4242) -> ProcessHandle:
    return ProcessHandle(session_id=session_id, process=FakeProcess(pid))


class TestProcessHandle:
    """Tests for ProcessHandle."""

    def test_terminate_running(self):
        handle = make_handle()
        handle.terminate()
        assert handle.process.terminated == 1

    def test_terminate_exited_is_noop(self):
        handle = ProcessHandle(session_id="s1", process=FakeProcess(returncode=0))
        handle.terminate()
        assert handle.process.terminated == 0
        assert handle.has_exited is True

    def test_terminate_after_exit_race(self):
        """ProcessLookupError from a just-exited process is ignored."""

        class Vanished(FakeProcess):
            def terminate(self) -> None:
                raise ProcessLookupError

        ProcessHandle(session_id="s1", process=Vanished()).terminate()

    def test_each_handle_has_own_parsers(self):
        first, second = make_handle("a"), make_handle("b")
        assert first.lines is not second.lines
        assert first.decoder is not second.decoder


class TestSessionProcessTable:
    """Tests for per-session bookkeeping."""

    @pytest.fixture
    def table(self) -> SessionProcessTable:
        return SessionProcessTable()

    def test_attach_and_get(self, table):
        handle = make_handle()
        table.attach(handle)

        assert table.get_process("s1") is handle
        assert table.is_current(handle)
        assert table.running_sessions() == ["s1"]
        assert table.has_any_running()

    def test_attach_twice_raises(self, table):
        table.attach(make_handle())
        with pytest.raises(RuntimeError, match="already has a live process"):
            table.attach(make_handle())

    def test_detach(self, table):
        handle = make_handle()
        table.attach(handle)

        assert table.detach("s1") is handle
        assert table.get_process("s1") is None
        assert not table.is_current(handle)
        assert table.detach("s1") is None

    def test_detach_only_matching_handle(self, table):
        """A superseded handle cannot evict its successor."""
        old, new = make_handle(pid=1), make_handle(pid=2)
        table.attach(new)

        assert table.detach("s1", old) is None
        assert table.get_process("s1") is new
        assert table.detach("s1", new) is new

    def test_detach_all(self, table):
        table.attach(make_handle("a"))
        table.attach(make_handle("b"))

        handles = table.detach_all()

        assert sorted(h.session_id for h in handles) == ["a", "b"]
        assert not table.has_any_running()

    def test_remote_session_ids(self, table):
        assert table.get_remote_session_id("s1") is None
        table.set_remote_session_id("s1", "remote-1")
        assert table.get_remote_session_id("s1") == "remote-1"

    def test_start_pending_replaces(self, table):
        first = table.start_pending("s1")
        first.text = "old"
        second = table.start_pending("s1")

        assert second is not first
        assert table.get_pending("s1") is second
        assert second.text == ""

    def test_clear_pending(self, table):
        table.start_pending("s1")
        table.clear_pending("s1")
        assert table.get_pending("s1") is None
        table.clear_pending("missing")

    def test_forget(self, table):
        table.set_remote_session_id("s1", "r")
        table.start_pending("s1")
        table.set_remote_session_id("s2", "r2")

        table.forget("s1")

        assert table.get_remote_session_id("s1") is None
        assert table.get_pending("s1") is None
        assert table.get_remote_session_id("s2") == "r2"

    def test_clear_keeps_processes(self, table):
        handle = make_handle()
        table.attach(handle)
        table.set_remote_session_id("s1", "r")

        table.clear()

        assert table.get_remote_session_id("s1") is None
        assert table.get_process("s1") is handle
