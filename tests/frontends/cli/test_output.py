"""Tests for CLI output helpers."""

from __future__ import annotations

import io
import json

from rich.console import Console

from conduit.core.types import (
    Complete,
    ContextUpdate,
    ErrorKind,
    GenericError,
    SessionEvent,
    StreamingText,
    TokenUsage,
    ToolInvocation,
    ToolUse,
)
from conduit.frontends.cli.output import EventPrinter, event_to_dict, output_json, print_table


def make_printer() -> tuple[EventPrinter, io.StringIO, io.StringIO]:
    out, err = io.StringIO(), io.StringIO()
    printer = EventPrinter(
        console=Console(file=out, highlight=False, width=200),
        err_console=Console(file=err, highlight=False, width=200),
    )
    return printer, out, err


def render_all(printer: EventPrinter, *events) -> None:
    for inner in events:
        printer.render(SessionEvent(session_id="s1", event=inner))


class TestEventPrinter:
    """Tests for human-readable rendering."""

    def test_prints_only_new_text(self):
        printer, out, _ = make_printer()

        render_all(printer, StreamingText(text="Hel"), StreamingText(text="Hello"), Complete(exit_code=0))

        assert out.getvalue() == "Hello\n"

    def test_rewritten_text_starts_new_line(self):
        printer, out, _ = make_printer()

        render_all(printer, StreamingText(text="Draft"), StreamingText(text="Final"))

        assert out.getvalue() == "Draft\nFinal"

    def test_status_goes_to_stderr(self):
        printer, out, err = make_printer()
        tool = ToolInvocation(id="t1", name="Read", input={"file_path": "a.md"})

        render_all(
            printer,
            StreamingText(text="Looking"),
            ToolUse(invocation=tool),
            GenericError(message="boom", kind=ErrorKind.PROCESS_EXIT_ERROR),
            ContextUpdate(usage=TokenUsage(input_tokens=3, output_tokens=4)),
        )

        assert out.getvalue() == "Looking\n"
        assert "tool Read" in err.getvalue()
        assert "Error (process_exit_error): boom" in err.getvalue()
        assert "tokens: 7" in err.getvalue()


class TestFormatting:
    def test_event_to_dict(self):
        data = event_to_dict(SessionEvent(session_id="s1", event=GenericError(message="x")))

        assert data["session_id"] == "s1"
        assert data["type"] == "generic_error"
        assert data["kind"] == ErrorKind.GENERIC

    def test_output_json_serializes_enums(self, capsys):
        output_json(event_to_dict(SessionEvent(session_id="s1", event=GenericError(message="x"))), indent=None)

        assert json.loads(capsys.readouterr().out)["kind"] == "generic"

    def test_print_table(self, capsys):
        print_table(["Name", "Value"], [["python", "/usr/bin/python3"], ["backend"]])

        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split() == ["Name", "Value"]
        assert lines[2].split() == ["python", "/usr/bin/python3"]
        assert lines[3].strip() == "backend"
