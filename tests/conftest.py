"""Pytest configuration and fixtures."""

from __future__ import annotations

import stat
import sys
import textwrap
from collections.abc import Awaitable, Callable
from pathlib import Path

import pytest

from conduit.core.types import EventType, SessionEvent
from conduit.transport import InProcessTransport

# Preamble for fake CLI scripts: an emit() helper printing one record per line
FAKE_CLI_PREAMBLE = """\
import json
import os
import sys
import time


def emit(**record):
    sys.stdout.write(json.dumps(record) + "\\n")
    sys.stdout.flush()


args = sys.argv[1:]
prompt = args[args.index("-p") + 1] if "-p" in args else ""
if os.environ.get("FAKE_CLI_ARGS_FILE"):
    with open(os.environ["FAKE_CLI_ARGS_FILE"], "a") as f:
        f.write(json.dumps(args) + "\\n")
"""


@pytest.fixture
def fake_cli(tmp_path: Path) -> Callable[..., Path]:
    """Write an executable Python script that stands in for the CLI.

    The body runs after FAKE_CLI_PREAMBLE, so it can call emit(**record)
    and read prompt/args.
    """
    if sys.platform == "win32":
        pytest.skip("fake CLI executables need a POSIX shebang")

    def _make(body: str, name: str = "fake-claude") -> Path:
        path = tmp_path / name
        path.write_text(f"#!{sys.executable}\n" + FAKE_CLI_PREAMBLE + textwrap.dedent(body))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def transport() -> InProcessTransport:
    return InProcessTransport()


@pytest.fixture
def collect_events() -> Callable[..., Awaitable[list[SessionEvent]]]:
    """Read events from a transport until enough Complete events arrived."""

    async def _collect(
        transport: InProcessTransport,
        completes: int = 1,
        timeout: float = 10.0,
    ) -> list[SessionEvent]:
        events: list[SessionEvent] = []
        while sum(1 for e in events if e.type == EventType.COMPLETE) < completes:
            event = await transport.next_event(timeout=timeout)
            if event is None:
                raise AssertionError(f"timed out; got {[e.type.name for e in events]}")
            events.append(event)
        return events

    return _collect


@pytest.fixture
def wait_for_event() -> Callable[..., Awaitable[list[SessionEvent]]]:
    """Read events from a transport until one of the given type arrives."""

    async def _wait(
        transport: InProcessTransport,
        event_type: EventType,
        timeout: float = 10.0,
    ) -> list[SessionEvent]:
        events: list[SessionEvent] = []
        while not events or events[-1].type != event_type:
            event = await transport.next_event(timeout=timeout)
            if event is None:
                raise AssertionError(f"timed out waiting for {event_type.name}")
            events.append(event)
        return events

    return _wait
