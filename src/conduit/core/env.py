"""Environment building for spawned processes.

A host launched from a GUI (or a service manager) often has a minimal
PATH that does not match the user's login shell. Every spawn therefore
prepends a fixed list of common install locations so the CLI and the
Python interpreter can be found.
"""

from __future__ import annotations

import getpass
import os
from collections.abc import Iterable, Mapping
from pathlib import Path


def _home() -> str:
    return os.environ.get("HOME") or str(Path.home())


def spawn_path_dirs(home: str | None = None) -> list[str]:
    """Install locations prepended for one-shot CLI spawns."""
    home = home or _home()
    return [
        f"{home}/.local/bin",
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/usr/bin",
        "/bin",
    ]


def headless_path_dirs(home: str | None = None) -> list[str]:
    """Install locations prepended for headless terminal runs.

    Includes node version manager and npm-global directories, where
    npm-installed CLIs usually live.
    """
    home = home or _home()
    return [
        "/usr/local/bin",
        "/opt/homebrew/bin",
        f"{home}/.nvm/versions/node/v22/bin",
        f"{home}/.nvm/versions/node/v20/bin",
        f"{home}/.nvm/versions/node/v18/bin",
        f"{home}/.npm-global/bin",
        f"{home}/.local/bin",
        "/usr/bin",
        "/bin",
    ]


def augment_path(current: str | None, extra_dirs: Iterable[str]) -> str:
    """Prepend extra_dirs to a PATH string, keeping first occurrences only.

    Args:
        current: Existing PATH value (may be empty or None).
        extra_dirs: Directories to put in front, in order.

    Returns:
        The combined PATH using the platform separator.
    """
    combined: list[str] = []
    seen: set[str] = set()
    for entry in [*extra_dirs, *(current or "").split(os.pathsep)]:
        if entry and entry not in seen:
            seen.add(entry)
            combined.append(entry)
    return os.pathsep.join(combined)


def build_spawn_env(
    base: Mapping[str, str] | None = None,
    extra_dirs: Iterable[str] | None = None,
    overrides: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build the environment for a spawned process.

    Args:
        base: Starting environment. Defaults to os.environ.
        extra_dirs: Directories to prepend to PATH. Defaults to
            spawn_path_dirs().
        overrides: Variables applied last (PATH in here is still augmented).

    Returns:
        A new environment dict with PATH, HOME and USER set.
    """
    env = dict(os.environ if base is None else base)
    if overrides:
        env.update(overrides)

    home = env.get("HOME") or _home()
    dirs = list(extra_dirs) if extra_dirs is not None else spawn_path_dirs(home)

    env["PATH"] = augment_path(env.get("PATH"), dirs)
    env["HOME"] = home
    if not env.get("USER"):
        try:
            env["USER"] = getpass.getuser()
        except (KeyError, OSError):
            # No passwd entry (e.g. arbitrary container uid)
            pass
    return env
