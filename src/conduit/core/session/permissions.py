"""Permission policy file for the spawned CLI.

Translates capability toggles into the allow/deny rules the CLI reads from
``<working_dir>/.claude/settings.json``. Writing the file is a side effect
independent of any running process; the next spawn picks it up.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from conduit.core.config import DEFAULT_FILE_GLOBS, Permissions

logger = logging.getLogger(__name__)

POLICY_DIR = ".claude"
POLICY_FILE = "settings.json"
TRASH_DIR = ".trash"


def _path_rules(tools: Sequence[str], target: str) -> list[str]:
    return [f"{tool}({target})" for tool in tools]


class PermissionPolicyWriter:
    """Build and write the CLI's permission policy.

    Example:
        >>> writer = PermissionPolicyWriter("/vault", config_dir=".obsidian")
        >>> policy = writer.build_policy(Permissions(web_search=True))
        >>> "WebSearch" in policy["permissions"]["allow"]
        True
        >>> writer.write(Permissions())
        PosixPath('/vault/.claude/settings.json')
    """

    def __init__(
        self,
        working_dir: str | Path,
        config_dir: str = "",
        file_globs: Sequence[str] = DEFAULT_FILE_GLOBS,
        extra_deny: Sequence[str] = (),
    ) -> None:
        """Initialize writer.

        Args:
            working_dir: Workspace root the CLI runs in.
            config_dir: Host config folder (relative) to deny entirely.
            file_globs: Note patterns the file toggles apply to.
            extra_deny: Additional deny rules appended verbatim.
        """
        self.working_dir = Path(working_dir)
        self.config_dir = config_dir.strip("/")
        self.file_globs = tuple(file_globs)
        self.extra_deny = tuple(extra_deny)

    @property
    def path(self) -> Path:
        """Location of the policy file."""
        return self.working_dir / POLICY_DIR / POLICY_FILE

    def build_policy(self, permissions: Permissions) -> dict[str, Any]:
        """Build the policy document for a set of toggles."""
        allow: list[str] = []

        def _for_globs(tool: str) -> list[str]:
            return [f"{tool}(./**/{glob})" for glob in self.file_globs]

        if permissions.file_read:
            allow.extend(_for_globs("Read"))
        if permissions.file_edit:
            allow.extend(_for_globs("Edit"))
        if permissions.file_write:
            allow.extend(_for_globs("Write"))
            allow.extend(_for_globs("Delete"))
        if permissions.web_search:
            allow.append("WebSearch")
        if permissions.web_fetch:
            allow.append("WebFetch")
        if permissions.task:
            allow.append("Task")

        file_tools = ("Read", "Edit", "Write", "Delete")
        deny: list[str] = ["Bash"]
        if self.config_dir:
            deny.extend(_path_rules(file_tools, f"./{self.config_dir}/**"))
        deny.extend(_path_rules(file_tools, f"./{TRASH_DIR}/**"))
        deny.extend(self.extra_deny)

        return {"permissions": {"allow": allow, "deny": deny}}

    def write(self, permissions: Permissions) -> Path:
        """Write the policy file.

        Other top-level keys already present in the file are preserved;
        only "permissions" is replaced.

        Returns:
            Path of the written file.

        Raises:
            OSError: If the directory or file cannot be written.
        """
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)

        document: dict[str, Any] = {}
        if path.exists():
            try:
                existing = json.loads(path.read_text())
            except json.JSONDecodeError:
                logger.warning("policy_file_unreadable: path=%s, action=overwrite", path)
            else:
                if isinstance(existing, dict):
                    document = existing

        policy = self.build_policy(permissions)
        document["permissions"] = policy["permissions"]
        path.write_text(json.dumps(document, indent=2) + "\n")

        logger.debug(
            "policy_written: path=%s, allow=%d, deny=%d",
            path,
            len(policy["permissions"]["allow"]),
            len(policy["permissions"]["deny"]),
        )
        return path
