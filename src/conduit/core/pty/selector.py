"""Backend selection - PTY when a Python 3 interpreter exists, pipes otherwise.

The interpreter probe spawns processes, so BackendSelector runs it at most
once and memoizes the answer. An explicitly configured interpreter is
verified first; auto-discovery is only used when it is unset or unusable.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys

from conduit.core.pty.backend import Backend, BackendType
from conduit.core.pty.fallback_backend import FallbackBackend
from conduit.core.pty.pty_backend import PTYBackend

logger = logging.getLogger(__name__)

VERIFY_TIMEOUT = 5.0
PYTHON_NAMES = ("python3", "python")
COMMON_PYTHON_PATHS = (
    "/usr/bin/python3",
    "/usr/local/bin/python3",
    "/opt/homebrew/bin/python3",
)


def select_backend_type(platform: str, python_path: str | None) -> BackendType:
    """Pick the backend for a platform and resolved interpreter.

    Windows without an interpreter always gets the fallback; otherwise the
    PTY backend is chosen whenever an interpreter was found.
    """
    if platform == "win32" and not python_path:
        return BackendType.FALLBACK
    if python_path:
        return BackendType.PTY
    return BackendType.FALLBACK


async def verify_python(path: str, timeout: float = VERIFY_TIMEOUT) -> str | None:
    """Run ``path --version`` and accept Python 3 only.

    Returns:
        The version string (e.g. "Python 3.12.1"), or None.
    """
    try:
        process = await asyncio.create_subprocess_exec(
            path,
            "--version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except OSError as e:
        logger.debug("python_verify_failed: path=%s, error=%s", path, e)
        return None

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug("python_verify_timeout: path=%s", path)
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await process.wait()
        return None

    version = stdout.decode("utf-8", errors="replace").strip()
    if process.returncode != 0 or not version.startswith("Python 3"):
        logger.debug("python_rejected: path=%s, version=%r", path, version)
        return None
    return version


def _candidates() -> list[str]:
    candidates: list[str] = []
    # Our own interpreter, unless we are a frozen app
    if sys.executable and not getattr(sys, "frozen", False):
        candidates.append(sys.executable)
    for name in PYTHON_NAMES:
        found = shutil.which(name)
        if found:
            candidates.append(found)
    candidates.extend(COMMON_PYTHON_PATHS)

    unique: list[str] = []
    for path in candidates:
        if path not in unique:
            unique.append(path)
    return unique


async def find_python() -> str | None:
    """Auto-discover a usable Python 3 interpreter."""
    for path in _candidates():
        if await verify_python(path):
            return path
    return None


class BackendSelector:
    """Resolve the interpreter once and build backends accordingly.

    Example:
        >>> selector = BackendSelector(python_path=settings.python_path)
        >>> backend, backend_type = await selector.create_backend()
        >>> backend_type
        <BackendType.PTY: 'pty'>
    """

    def __init__(self, python_path: str | None = None, platform: str | None = None) -> None:
        """Initialize selector.

        Args:
            python_path: Explicit interpreter override (verified before use).
            platform: sys.platform value. Defaults to the current platform.
        """
        self._configured_path = python_path
        self._platform = platform or sys.platform
        self._python_path: str | None = None
        self._checked = False
        self._lock = asyncio.Lock()

    @property
    def checked(self) -> bool:
        """Whether the interpreter probe has run."""
        return self._checked

    @property
    def python_path(self) -> str | None:
        """Resolved interpreter, or None if not found (or not probed yet)."""
        return self._python_path

    @property
    def platform(self) -> str:
        return self._platform

    async def resolve_python(self) -> str | None:
        """Probe for an interpreter on first call; return the memoized result."""
        async with self._lock:
            if self._checked:
                return self._python_path

            if self._configured_path:
                version = await verify_python(self._configured_path)
                if version:
                    self._python_path = self._configured_path
                    logger.debug("python_configured: path=%s, version=%s", self._python_path, version)
                else:
                    logger.warning("python_configured_unusable: path=%s", self._configured_path)

            if self._python_path is None:
                self._python_path = await find_python()
                if self._python_path:
                    logger.debug("python_found: path=%s", self._python_path)
                else:
                    logger.info("python_not_found: using fallback terminal backend")

            self._checked = True
            return self._python_path

    async def backend_type(self) -> BackendType:
        return select_backend_type(self._platform, await self.resolve_python())

    async def create_backend(self) -> tuple[Backend, BackendType]:
        """Construct a backend of the selected type.

        If constructing the PTY backend raises, a FallbackBackend is
        returned instead.
        """
        python_path = await self.resolve_python()
        if select_backend_type(self._platform, python_path) is BackendType.PTY and python_path:
            try:
                return PTYBackend(python_path, platform=self._platform), BackendType.PTY
            except (OSError, ValueError) as e:
                logger.warning("pty_backend_unavailable: error=%s, action=fallback", e)
        return FallbackBackend(), BackendType.FALLBACK
