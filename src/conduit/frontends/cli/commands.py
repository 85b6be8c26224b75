"""Command definitions for the conduit CLI."""

from __future__ import annotations

import asyncio
import os
import uuid
from dataclasses import replace

import rich_click as click
import yaml

from conduit.core.config import ConduitConfig, load_config
from conduit.core.logging_config import configure_logging
from conduit.core.pty import BackendSelector, TerminalManager, select_backend_type
from conduit.core.session import PermissionPolicyWriter, ProcessOrchestrator
from conduit.core.types import Complete, EventType
from conduit.frontends.cli.output import (
    EventPrinter,
    error_exit,
    event_to_dict,
    output_json,
    print_table,
)
from conduit.transport import InProcessTransport

# Configure rich-click styling
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.ERRORS_EPILOGUE = ""
click.rich_click.MAX_WIDTH = 100

ERROR_EVENTS = frozenset({EventType.RATE_LIMIT_ERROR, EventType.AUTH_ERROR, EventType.GENERIC_ERROR})


def _load(ctx: click.Context, cwd: str | None = None) -> ConduitConfig:
    try:
        return load_config(ctx.obj.get("config_file"), working_dir=cwd)
    except (yaml.YAMLError, ValueError) as e:
        error_exit(f"Invalid config: {e}")


# =========================================================================
# Root CLI
# =========================================================================
@click.group()
@click.version_option(package_name="conduit")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
@click.option("--config", "config_file", default=None, help="YAML config file (or CONDUIT_CONFIG)")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None, config_file: str | None) -> None:
    """Conduit - Drive AI CLI processes per session.

    **Commands:**

        conduit send          Run one prompt and stream the answer

        conduit headless      Run a command in an invisible terminal

        conduit permissions   Write the CLI permission policy

        conduit backend       Show which terminal backend would be used
    """
    try:
        configure_logging(level=log_level or os.environ.get("CONDUIT_LOG_LEVEL", "WARNING"), force=True)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e
    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


# =========================================================================
# send
# =========================================================================
async def _send(
    config: ConduitConfig,
    prompt: str,
    session_id: str,
    model: str | None,
    resume: str | None,
    json_output: bool,
) -> int:
    transport = InProcessTransport()
    orchestrator = ProcessOrchestrator.from_config(config, event_sink=transport)
    printer = EventPrinter()
    failed = False

    try:
        await orchestrator.send_message(session_id, prompt, remote_session_id=resume, model=model)
        while True:
            event = await transport.next_event()
            if event is None:
                break
            if json_output:
                output_json(event_to_dict(event), indent=None)
            else:
                printer.render(event)

            if event.type in ERROR_EVENTS:
                failed = True
            if isinstance(event.event, Complete):
                if event.event.exit_code != 0:
                    failed = True
                break
    finally:
        await orchestrator.aclose()

    return 1 if failed else 0


@cli.command()
@click.argument("prompt")
@click.option("--session", "session_id", default=None, help="Session id (default: random)")
@click.option("--model", default=None, help="Model override passed to the CLI")
@click.option("--resume", default=None, help="CLI session id to resume")
@click.option("--cwd", default=None, help="Working directory for the CLI")
@click.option("--json", "-j", "json_output", is_flag=True, help="Print events as JSON lines")
@click.pass_context
def send(
    ctx: click.Context,
    prompt: str,
    session_id: str | None,
    model: str | None,
    resume: str | None,
    cwd: str | None,
    json_output: bool,
) -> None:
    """Send one prompt to the CLI and stream the answer.

    Exits with status 1 if the run reported an error.

    **Examples:**

        conduit send "Summarize README.md"

        conduit send "Continue" --resume 4f1c...

        conduit send "List my notes" --json
    """
    config = _load(ctx, cwd)
    code = asyncio.run(
        _send(config, prompt, session_id or str(uuid.uuid4()), model, resume, json_output)
    )
    ctx.exit(code)


# =========================================================================
# headless
# =========================================================================
@cli.command()
@click.argument("command")
@click.option("--input", "input_text", default="", help="Text sent after startup (\\n for Enter)")
@click.option("--timeout", default=5.0, show_default=True, help="Seconds before returning what arrived")
@click.option("--cwd", default=None, help="Working directory")
@click.pass_context
def headless(ctx: click.Context, command: str, input_text: str, timeout: float, cwd: str | None) -> None:
    """Run COMMAND in an invisible terminal and print its output.

    **Examples:**

        conduit headless codex --input '/status\\nexit\\n'
    """
    config = _load(ctx, cwd)
    manager = TerminalManager(config.working_dir, settings=config.terminal)
    text = input_text.replace("\\n", "\n").replace("\\r", "\r").replace("\\t", "\t")

    output = asyncio.run(manager.execute_headless(command, text, timeout=timeout))
    if output is None:
        error_exit(f"Failed to run: {command}")
    click.echo(output, nl=not output.endswith("\n"))


# =========================================================================
# permissions
# =========================================================================
@cli.command()
@click.option("--file-read/--no-file-read", default=None, help="Allow reading notes")
@click.option("--file-edit/--no-file-edit", default=None, help="Allow editing notes")
@click.option("--file-write/--no-file-write", default=None, help="Allow creating and deleting notes")
@click.option("--web-search/--no-web-search", default=None, help="Allow web search")
@click.option("--web-fetch/--no-web-fetch", default=None, help="Allow fetching URLs")
@click.option("--task/--no-task", default=None, help="Allow sub-agents")
@click.option("--cwd", default=None, help="Working directory holding .claude/settings.json")
@click.option("--dry-run", "-d", is_flag=True, help="Print the policy instead of writing it")
@click.pass_context
def permissions(
    ctx: click.Context,
    file_read: bool | None,
    file_edit: bool | None,
    file_write: bool | None,
    web_search: bool | None,
    web_fetch: bool | None,
    task: bool | None,
    cwd: str | None,
    dry_run: bool,
) -> None:
    """Write the CLI permission policy for a working directory.

    Unset toggles keep their configured values.

    **Examples:**

        conduit permissions --web-search --cwd ~/vault

        conduit permissions --no-file-write --dry-run
    """
    config = _load(ctx, cwd)
    toggles = {
        "file_read": file_read,
        "file_edit": file_edit,
        "file_write": file_write,
        "web_search": web_search,
        "web_fetch": web_fetch,
        "task": task,
    }
    resolved = replace(config.permissions, **{k: v for k, v in toggles.items() if v is not None})
    writer = PermissionPolicyWriter(
        config.working_dir,
        config_dir=config.config_dir,
        file_globs=config.file_globs,
        extra_deny=config.extra_deny,
    )

    if dry_run:
        output_json(writer.build_policy(resolved))
        return

    try:
        path = writer.write(resolved)
    except OSError as e:
        error_exit(f"Cannot write {writer.path}: {e}")
    click.echo(f"Wrote {path}")


# =========================================================================
# backend
# =========================================================================
@cli.command()
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def backend(ctx: click.Context, json_output: bool) -> None:
    """Show the Python interpreter and terminal backend that would be used."""
    config = _load(ctx)
    selector = BackendSelector(python_path=config.terminal.python_path)
    python_path = asyncio.run(selector.resolve_python())
    backend_type = select_backend_type(selector.platform, python_path)

    data = {
        "platform": selector.platform,
        "python": python_path,
        "backend": backend_type.value,
    }
    if json_output:
        output_json(data)
    else:
        print_table(["Platform", "Python", "Backend"], [[data["platform"], python_path or "-", data["backend"]]])
