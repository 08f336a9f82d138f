"""Error taxonomy for workspace operations."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path


class WorkspaceError(RuntimeError):
    """Base class for every workspace failure rendered by the CLI."""


class WorkspaceNotFoundError(WorkspaceError):
    """No workspace descriptor exists at the given root."""

    def __init__(self, root: Path) -> None:
        super().__init__(f"No workspace configuration found in {root}")
        self.root = root


class WorkspaceNotEmptyError(WorkspaceError):
    """Workspace init targeted a directory that already has content."""

    def __init__(self, root: Path) -> None:
        super().__init__(f"Directory is not empty: {root}")
        self.root = root


class WorkspaceIOError(WorkspaceError):
    """Descriptor could not be read, parsed, or written."""


class DuplicateMemberError(WorkspaceError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Member '{name}' already exists")
        self.name = name


class MemberNotFoundError(WorkspaceError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Member '{name}' not found")
        self.name = name


class MemberPathNotFoundError(WorkspaceError):
    def __init__(self, path: Path) -> None:
        super().__init__(f"Project path does not exist: {path}")
        self.path = path


class InvalidMemberPathError(WorkspaceError):
    """Member path is the workspace root itself or escapes it."""

    def __init__(self, path: Path, root: Path) -> None:
        super().__init__(f"Member path must be a directory inside the workspace {root}: {path}")
        self.path = path
        self.root = root


class ScriptNotFoundError(WorkspaceError):
    def __init__(self, name: str) -> None:
        super().__init__(f"Script '{name}' not found")
        self.name = name


class CircularDependencyError(WorkspaceError):
    """Dependency graph has no valid order; names every unresolved member."""

    def __init__(self, involved_members: Iterable[str]) -> None:
        self.involved_members = list(involved_members)
        super().__init__(
            "Circular dependency detected among workspace members: "
            + ", ".join(self.involved_members),
        )


class ProjectConfigError(WorkspaceError):
    """A member's own project descriptor is unreadable or invalid."""


class CommandFailedError(WorkspaceError):
    """One member's command exited unsuccessfully."""

    def __init__(self, member: str, exit_code: int, *, command: str = "") -> None:
        detail = f" ({command})" if command else ""
        super().__init__(f"Command failed in member '{member}' with exit code {exit_code}{detail}")
        self.member = member
        self.exit_code = exit_code
        self.command = command


class AggregateFailureError(WorkspaceError):
    """One or more members failed after every attempted member finished."""

    def __init__(self, failures: Iterable[CommandFailedError]) -> None:
        self.failures = list(failures)
        summary = ", ".join(f"{error.member} (exit {error.exit_code})" for error in self.failures)
        super().__init__(f"Workspace operation failed in {len(self.failures)} member(s): {summary}")

    @property
    def failed_members(self) -> list[str]:
        return [error.member for error in self.failures]
