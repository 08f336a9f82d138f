"""Domain models for workspaces, members, and execution results."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from cyrus.workspace.errors import AggregateFailureError, CommandFailedError


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def default_max_parallel_jobs() -> int:
    return os.cpu_count() or 1


@dataclass(slots=True)
class Member:
    """One sub-project registered in a workspace."""

    name: str
    path: Path
    language: str = "unknown"
    enabled: bool = True
    build_order: int | None = None
    dependencies: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SharedConfig:
    """Defaults shared by every member of a workspace."""

    default_language_versions: dict[str, str] = field(default_factory=dict)
    shared_environment: dict[str, str] = field(default_factory=dict)
    common_scripts: dict[str, str] = field(default_factory=dict)
    build_parallel: bool = True
    max_parallel_jobs: int | None = field(default_factory=default_max_parallel_jobs)


@dataclass(slots=True)
class DependencySets:
    """Informational per-language dependency lists shared across members."""

    shared_dependencies: dict[str, list[str]] = field(default_factory=dict)
    shared_dev_dependencies: dict[str, list[str]] = field(default_factory=dict)


@dataclass(slots=True)
class WorkspaceScript:
    """Named, reusable command run across a subset of members."""

    name: str
    command: str
    description: str = ""
    run_in_members: list[str] = field(default_factory=list)
    run_parallel: bool = False
    continue_on_error: bool = False


@dataclass(slots=True)
class Workspace:
    """Root aggregate; loaded and persisted once per invocation."""

    name: str
    root_path: Path
    description: str = ""
    members: list[Member] = field(default_factory=list)
    shared_config: SharedConfig = field(default_factory=SharedConfig)
    dependencies: DependencySets = field(default_factory=DependencySets)
    scripts: dict[str, WorkspaceScript] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def find_member(self, name: str) -> Member | None:
        for member in self.members:
            if member.name == name:
                return member
        return None

    def enabled_members(self) -> list[Member]:
        return [member for member in self.members if member.enabled]

    def member_dir(self, member: Member) -> Path:
        return self.root_path / member.path

    def touch(self) -> None:
        self.updated_at = _utc_now()


@dataclass(slots=True)
class MemberRunResult:
    """Outcome of one member's command."""

    member: str
    argv: list[str]
    exit_code: int
    duration_seconds: float
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_error(self) -> CommandFailedError:
        return CommandFailedError(self.member, self.exit_code, command=" ".join(self.argv))


@dataclass(slots=True)
class RunReport:
    """Aggregated results of one engine call, in member order."""

    results: list[MemberRunResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def failures(self) -> list[MemberRunResult]:
        return [result for result in self.results if not result.ok]

    @property
    def succeeded(self) -> bool:
        return not self.failures and not self.skipped

    def extend(self, other: RunReport) -> None:
        self.results.extend(other.results)
        self.skipped.extend(other.skipped)

    def raise_for_failures(self) -> None:
        """Surface recorded failures once every attempted member has finished."""

        failures = self.failures
        if failures:
            raise AggregateFailureError(result.to_error() for result in failures)


@dataclass(slots=True)
class MemberStatus:
    """Health snapshot of one member directory."""

    name: str
    language: str
    enabled: bool
    exists: bool
    has_project_config: bool
    last_modified: datetime | None


@dataclass(slots=True)
class WorkspaceStatus:
    """Workspace-wide health summary."""

    name: str
    root_path: Path
    total_members: int
    enabled_members: int
    member_statuses: list[MemberStatus] = field(default_factory=list)
