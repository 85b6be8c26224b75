"""Fallback Backend - plain pipes, no terminal emulation.

Used when no Python 3 interpreter is available for the PTY helper.
Programs see pipes instead of a terminal, so full-screen applications
and line editing will not work; stdout and stderr are both shown.
"""

from __future__ import annotations

import asyncio
import logging

from conduit.core.pty.backend import SpawnOptions, SubprocessBackend

logger = logging.getLogger(__name__)


class FallbackBackend(SubprocessBackend):
    """Pipe-based backend (limited mode)."""

    async def _launch(self, options: SpawnOptions) -> asyncio.subprocess.Process:
        return await asyncio.create_subprocess_exec(
            options.shell,
            *options.args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=options.cwd,
            env=options.env,
        )

    async def resize(self, cols: int, rows: int) -> None:
        # Pipes have no window size
        logger.debug("fallback_resize_ignored: cols=%d, rows=%d", cols, rows)
