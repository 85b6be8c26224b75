"""Output formatting utilities for CLI commands."""

from __future__ import annotations

import dataclasses
import json
import sys
from enum import Enum
from typing import Any, NoReturn

import rich_click as click
from rich.console import Console
from rich.text import Text

from conduit.core.types import (
    AuthError,
    CompactionNotice,
    Complete,
    ContextUpdate,
    GenericError,
    RateLimitError,
    SessionEvent,
    StreamingText,
    TerminalData,
    ToolResult,
    ToolUse,
)

TOOL_INPUT_PREVIEW = 80


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def event_to_dict(event: SessionEvent) -> dict[str, Any]:
    """Flatten a SessionEvent into a JSON-serializable dict."""
    return {
        "session_id": event.session_id,
        "type": event.type.name.lower(),
        "timestamp": event.timestamp,
        **dataclasses.asdict(event.event),
    }


def output_json(data: Any, indent: int | None = 2) -> None:
    """Output data as JSON."""
    click.echo(json.dumps(data, indent=indent, default=_jsonable))


def print_table(headers: list[str], rows: list[list[str]], separator_width: int = 70) -> None:
    """Print rows under headers with columns padded to the widest cell."""
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row[: len(headers)]):
            widths[i] = max(widths[i], len(cell))

    fmt = " ".join(f"{{:<{w}}}" for w in widths[:-1]) + (" {}" if len(widths) > 1 else "{}")
    click.echo(fmt.format(*headers))
    click.echo("-" * separator_width)
    for row in rows:
        padded = list(row) + [""] * (len(headers) - len(row))
        click.echo(fmt.format(*padded[: len(headers)]))


def error_exit(message: str, code: int = 1) -> NoReturn:
    """Print error message and exit with code."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def error_print(message: str) -> None:
    """Print error message without exiting."""
    click.echo(f"Error: {message}", err=True)


class EventPrinter:
    """Render a session's event stream for humans.

    StreamingText carries the full text so far; only the new suffix is
    printed. Tool calls, errors and usage go to stderr so stdout holds
    just the assistant's answer.
    """

    def __init__(self, console: Console | None = None, err_console: Console | None = None) -> None:
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)
        self._printed = ""
        self._line_open = False

    def render(self, event: SessionEvent) -> None:
        inner = event.event
        if isinstance(inner, StreamingText):
            self._print_text(inner.text)
        elif isinstance(inner, ToolUse):
            preview = json.dumps(inner.invocation.input)[:TOOL_INPUT_PREVIEW]
            self._status(Text.assemble(("tool ", "cyan"), (inner.invocation.name, "bold cyan"), f" {preview}"))
        elif isinstance(inner, ToolResult):
            self._status(Text(f"tool result {inner.tool_use_id}: {len(inner.content)} chars", style="dim"))
        elif isinstance(inner, RateLimitError):
            hint = f" (resets {inner.reset_hint})" if inner.reset_hint else ""
            self._status(Text(f"Rate limited: {inner.message}{hint}", style="bold yellow"))
        elif isinstance(inner, AuthError):
            self._status(Text(inner.message, style="bold red"))
        elif isinstance(inner, GenericError):
            self._status(Text(f"Error ({inner.kind.value}): {inner.message}", style="bold red"))
        elif isinstance(inner, CompactionNotice):
            self._status(Text(f"Context compacted ({inner.trigger or 'auto'}, {inner.pre_tokens} tokens)", style="dim"))
        elif isinstance(inner, ContextUpdate):
            self._status(Text(f"tokens: {inner.usage.total}", style="dim"))
        elif isinstance(inner, TerminalData):
            self.console.out(inner.data, end="")
        elif isinstance(inner, Complete):
            self._close_line()
            self._printed = ""

    def _print_text(self, text: str) -> None:
        if text.startswith(self._printed):
            self.console.out(text[len(self._printed) :], end="")
        else:
            self.console.out("\n" + text, end="")
        self._printed = text
        self._line_open = bool(text) and not text.endswith("\n")

    def _close_line(self) -> None:
        if self._line_open:
            self.console.out("")
            self._line_open = False

    def _status(self, text: Text) -> None:
        self._close_line()
        self.err_console.print(text)
