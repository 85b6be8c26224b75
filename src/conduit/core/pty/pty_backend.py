"""PTY Backend - pseudo-terminal via a relay helper.

The host process never forks a terminal itself. Instead it runs
pty_helper.py with a Python 3 interpreter; the helper owns the
pseudo-terminal and relays bytes over ordinary pipes. Resizes are sent as
JSON lines on a dedicated control pipe.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import sys
from pathlib import Path

from conduit.core.pty.backend import SpawnOptions, SubprocessBackend

logger = logging.getLogger(__name__)

HELPER_PATH = Path(__file__).with_name("pty_helper.py")

# Must match pty_helper.CONTROL_FD_ENV (the helper is not importable on Windows)
CONTROL_FD_ENV = "CONDUIT_PTY_CONTROL_FD"


def resolve_command(command: str, cwd: str | None = None, path: str | None = None) -> str:
    """Find the executable a command name refers to.

    Names containing a slash are taken relative to cwd; bare names are
    searched on path.

    Raises:
        FileNotFoundError: If no executable is found.
    """
    if os.sep in command:
        candidate = os.path.join(cwd or os.getcwd(), command)
        found = shutil.which(candidate)
    else:
        found = shutil.which(command, path=path if path is not None else os.defpath)
    if found is None:
        raise FileNotFoundError(f"Command not found: {command}")
    return found


class PTYBackend(SubprocessBackend):
    """Pseudo-terminal backend.

    Example:
        >>> backend = PTYBackend("/usr/bin/python3")
        >>> backend.add_listener(lambda event: print(event.data, end=""))
        >>> await backend.spawn(SpawnOptions(shell="/bin/bash", args=["-l"], cwd="/vault"))
        >>> await backend.write("ls\\n")
        >>> await backend.resize(120, 40)
        >>> backend.kill()
    """

    def __init__(self, python_path: str, helper_path: Path = HELPER_PATH, platform: str | None = None) -> None:
        """Initialize PTY backend.

        Args:
            python_path: Python 3 interpreter that runs the helper.
            helper_path: Relay script to run.
            platform: sys.platform value. Defaults to the current platform.

        Raises:
            OSError: If pseudo-terminals are unavailable on this platform.
            ValueError: If python_path is empty.
            FileNotFoundError: If the helper script is missing.
        """
        super().__init__()
        if (platform or sys.platform) == "win32":
            raise OSError("Pseudo-terminals are not available on Windows")
        if not python_path:
            raise ValueError("python_path is required")
        if not Path(helper_path).is_file():
            raise FileNotFoundError(f"PTY helper not found: {helper_path}")
        self._python_path = python_path
        self._helper_path = Path(helper_path)
        self._control_fd: int | None = None

    @property
    def python_path(self) -> str:
        return self._python_path

    async def _launch(self, options: SpawnOptions) -> asyncio.subprocess.Process:
        env = dict(os.environ if options.env is None else options.env)
        env["TERM"] = "xterm-256color"
        # The helper's exec failure would only surface as terminal output
        resolve_command(options.shell, options.cwd, env.get("PATH"))

        read_fd, write_fd = os.pipe()
        env[CONTROL_FD_ENV] = str(read_fd)

        try:
            process = await asyncio.create_subprocess_exec(
                self._python_path,
                str(self._helper_path),
                str(options.cols),
                str(options.rows),
                options.shell,
                *options.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=options.cwd,
                env=env,
                pass_fds=(read_fd,),
            )
        except OSError:
            os.close(write_fd)
            raise
        finally:
            os.close(read_fd)

        self._control_fd = write_fd
        return process

    def _stderr_is_output(self) -> bool:
        # The shell's stderr goes through the terminal; the helper's own
        # stderr is diagnostics
        return False

    async def resize(self, cols: int, rows: int) -> None:
        """Resize the pseudo-terminal window."""
        if self._control_fd is None or not self.is_running:
            return
        request = json.dumps({"cols": cols, "rows": rows}) + "\n"
        try:
            os.write(self._control_fd, request.encode())
        except OSError as e:
            logger.debug("pty_resize_failed: pid=%s, error=%s", self.pid, e)

    def kill(self) -> None:
        super().kill()
        self._close_control()

    async def _pump(self, process: asyncio.subprocess.Process) -> None:
        try:
            await super()._pump(process)
        finally:
            self._close_control()

    def _close_control(self) -> None:
        if self._control_fd is not None:
            try:
                os.close(self._control_fd)
            except OSError:
                pass
            self._control_fd = None
