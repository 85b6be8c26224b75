"""Configuration for conduit.

Plain dataclasses with to_dict/from_dict so hosts can persist them as
ordinary data records. ``load_config`` resolves values with priority
argument > environment > YAML file > default.

Environment Variables:
    CONDUIT_CONFIG: Path to a YAML config file
    CONDUIT_CLI_PATH: CLI executable to spawn (default "claude")
    CONDUIT_WORKING_DIR: Working directory for spawned processes
    CONDUIT_CONFIG_DIR: Host config folder to shield from the CLI
    CONDUIT_PYTHON_PATH: Python interpreter for the PTY backend
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "CONDUIT_CONFIG"

# Note patterns the file permission toggles apply to
DEFAULT_FILE_GLOBS = ("*.md", "*.canvas", "*.base")


@dataclass
class Permissions:
    """Capability toggles for the spawned CLI.

    Attributes:
        file_read: Allow reading notes.
        file_edit: Allow editing notes.
        file_write: Allow creating and deleting notes.
        web_search: Allow the WebSearch tool.
        web_fetch: Allow the WebFetch tool.
        task: Allow launching sub-agents (Task tool).
    """

    file_read: bool = True
    file_edit: bool = True
    file_write: bool = True
    web_search: bool = False
    web_fetch: bool = False
    task: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {
            "fileRead": self.file_read,
            "fileEdit": self.file_edit,
            "fileWrite": self.file_write,
            "webSearch": self.web_search,
            "webFetch": self.web_fetch,
            "task": self.task,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Permissions:
        """Create from a dict with camelCase or snake_case keys."""
        data = data or {}
        defaults = cls()

        def _flag(camel: str, snake: str, default: bool) -> bool:
            value = data.get(camel, data.get(snake, default))
            return bool(value)

        return cls(
            file_read=_flag("fileRead", "file_read", defaults.file_read),
            file_edit=_flag("fileEdit", "file_edit", defaults.file_edit),
            file_write=_flag("fileWrite", "file_write", defaults.file_write),
            web_search=_flag("webSearch", "web_search", defaults.web_search),
            web_fetch=_flag("webFetch", "web_fetch", defaults.web_fetch),
            task=_flag("task", "task", defaults.task),
        )


@dataclass
class TerminalProfile:
    """A shell that terminal sessions can be started with."""

    id: str
    name: str
    shell: str
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "shell": self.shell,
            "args": list(self.args),
            "env": dict(self.env),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TerminalProfile:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            shell=str(data["shell"]),
            args=[str(a) for a in data.get("args", [])],
            env={str(k): str(v) for k, v in (data.get("env") or {}).items()},
        )


def get_default_profiles(platform: str | None = None) -> list[TerminalProfile]:
    """Default shell profiles for a platform.

    Args:
        platform: sys.platform value. Defaults to the current platform.
    """
    platform = platform or sys.platform
    if platform == "win32":
        return [
            TerminalProfile(id="powershell", name="PowerShell", shell="powershell.exe", args=["-NoLogo"]),
            TerminalProfile(id="cmd", name="Command Prompt", shell="cmd.exe"),
        ]

    login_shell = os.environ.get("SHELL")
    default_shell = "/bin/zsh" if platform == "darwin" else "/bin/bash"
    profiles = [
        TerminalProfile(
            id="default",
            name=Path(login_shell or default_shell).name,
            shell=login_shell or default_shell,
            args=["-l"],
        )
    ]
    if login_shell and login_shell != default_shell:
        profiles.append(
            TerminalProfile(id=Path(default_shell).name, name=Path(default_shell).name, shell=default_shell, args=["-l"])
        )
    return profiles


@dataclass
class TerminalSettings:
    """Settings for interactive terminal sessions.

    Attributes:
        default_profile: Profile id used when none is requested.
        profiles: Available shell profiles.
        python_path: Explicit interpreter for the PTY backend. When unset
            (or unusable) one is discovered automatically.
    """

    default_profile: str = "default"
    profiles: list[TerminalProfile] = field(default_factory=get_default_profiles)
    python_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "defaultProfile": self.default_profile,
            "profiles": [p.to_dict() for p in self.profiles],
            "pythonPath": self.python_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TerminalSettings:
        data = data or {}
        profiles_data = data.get("profiles")
        profiles = (
            [TerminalProfile.from_dict(p) for p in profiles_data]
            if profiles_data
            else get_default_profiles()
        )
        return cls(
            default_profile=str(data.get("defaultProfile", data.get("default_profile", "default"))),
            profiles=profiles,
            python_path=data.get("pythonPath", data.get("python_path")),
        )


@dataclass
class ConduitConfig:
    """Top-level configuration.

    Attributes:
        cli_path: CLI executable spawned for each prompt.
        working_dir: Working directory for spawned processes; the
            permission policy file lives under it.
        config_dir: Host config folder (relative to working_dir) the CLI
            must never touch. Empty disables those deny rules.
        permissions: Capability toggles.
        file_globs: Note patterns the file toggles grant access to.
        extra_deny: Deny rules added verbatim to the permission policy.
        terminal: Interactive terminal settings.
    """

    cli_path: str = "claude"
    working_dir: str = field(default_factory=os.getcwd)
    config_dir: str = ""
    permissions: Permissions = field(default_factory=Permissions)
    file_globs: list[str] = field(default_factory=lambda: list(DEFAULT_FILE_GLOBS))
    extra_deny: list[str] = field(default_factory=list)
    terminal: TerminalSettings = field(default_factory=TerminalSettings)

    def to_dict(self) -> dict[str, Any]:
        return {
            "cliPath": self.cli_path,
            "workingDir": self.working_dir,
            "configDir": self.config_dir,
            "permissions": self.permissions.to_dict(),
            "fileGlobs": list(self.file_globs),
            "extraDeny": list(self.extra_deny),
            "terminal": self.terminal.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ConduitConfig:
        data = data or {}
        return cls(
            cli_path=str(data.get("cliPath", data.get("cli_path", "claude"))),
            working_dir=str(data.get("workingDir", data.get("working_dir", os.getcwd()))),
            config_dir=str(data.get("configDir", data.get("config_dir", ""))),
            permissions=Permissions.from_dict(data.get("permissions")),
            file_globs=_str_list(data.get("fileGlobs", data.get("file_globs")), DEFAULT_FILE_GLOBS),
            extra_deny=_str_list(data.get("extraDeny", data.get("extra_deny")), ()),
            terminal=TerminalSettings.from_dict(data.get("terminal")),
        )


def _str_list(value: Any, default: Sequence[str]) -> list[str]:
    if value is None:
        return list(default)
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def _read_config_file(config_path: str | None) -> dict[str, Any]:
    if not config_path:
        return {}
    path = Path(config_path).expanduser()
    try:
        content = path.read_text()
    except FileNotFoundError:
        logger.warning("config_file_missing: path=%s", path)
        return {}
    data = yaml.safe_load(content) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    logger.debug("config_file_loaded: path=%s, keys=%s", path, sorted(data))
    return data


def load_config(
    config_file: str | None = None,
    cli_path: str | None = None,
    working_dir: str | None = None,
) -> ConduitConfig:
    """Load configuration.

    Args:
        config_file: YAML file path, or None to check CONDUIT_CONFIG.
        cli_path: Explicit CLI path (highest priority).
        working_dir: Explicit working directory (highest priority).

    Returns:
        The resolved configuration.

    Raises:
        yaml.YAMLError: If the config file is not valid YAML.
        ValueError: If the config file is not a mapping.
    """
    config = ConduitConfig.from_dict(_read_config_file(config_file or os.environ.get(CONFIG_ENV)))

    env_cli = os.environ.get("CONDUIT_CLI_PATH")
    env_cwd = os.environ.get("CONDUIT_WORKING_DIR")
    env_config_dir = os.environ.get("CONDUIT_CONFIG_DIR")
    env_python = os.environ.get("CONDUIT_PYTHON_PATH")

    if cli_path is not None:
        config.cli_path = cli_path
    elif env_cli:
        config.cli_path = env_cli

    if working_dir is not None:
        config.working_dir = working_dir
    elif env_cwd:
        config.working_dir = env_cwd

    if env_config_dir:
        config.config_dir = env_config_dir
    if env_python:
        config.terminal.python_path = env_python

    config.working_dir = str(Path(config.working_dir).expanduser())
    return config
