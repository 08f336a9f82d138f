"""Named multi-member commands stored with the workspace."""

from __future__ import annotations

import logging
import shlex

from cyrus.workspace.errors import ScriptNotFoundError, WorkspaceError
from cyrus.workspace.execution import ExecutionEngine
from cyrus.workspace.models import Member, RunReport, Workspace, WorkspaceScript

logger = logging.getLogger(__name__)


class ScriptRunner:
    """Resolves a script by name and drives it through the engine, ignoring batch order."""

    def __init__(self, workspace: Workspace, engine: ExecutionEngine) -> None:
        self.workspace = workspace
        self.engine = engine

    def resolve(self, name: str) -> WorkspaceScript:
        script = self.workspace.scripts.get(name)
        if script is None:
            raise ScriptNotFoundError(name)
        return script

    def target_members(self, script: WorkspaceScript) -> list[Member]:
        enabled = self.workspace.enabled_members()
        if not script.run_in_members:
            return enabled
        return [member for member in enabled if member.name in script.run_in_members]

    def run_script(self, name: str) -> RunReport:
        script = self.resolve(name)
        command, args = split_script_command(script)
        members = self.target_members(script)
        logger.info("Running script %r in %d member(s)", name, len(members))
        return self.engine.run(
            members,
            command,
            args,
            parallel=script.run_parallel,
            continue_on_error=script.continue_on_error,
        )


def split_script_command(script: WorkspaceScript) -> tuple[str, list[str]]:
    try:
        parts = shlex.split(script.command)
    except ValueError as error:
        raise WorkspaceError(f"Script '{script.name}' has an invalid command: {error}") from error
    if not parts:
        raise WorkspaceError(f"Script '{script.name}' has an empty command")
    return parts[0], parts[1:]
