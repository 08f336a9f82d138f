"""Controllers for workspace CLI commands."""

from __future__ import annotations

import shlex
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from cyrus.config import Settings
from cyrus.project.descriptor import DescriptorProjectResolver
from cyrus.project.scaffold import TemplateScaffolder
from cyrus.workspace.errors import (
    AggregateFailureError,
    CommandFailedError,
    WorkspaceError,
    WorkspaceNotFoundError,
)
from cyrus.workspace.execution import ExecutionEngine
from cyrus.workspace.models import MemberRunResult, RunReport, Workspace, WorkspaceScript
from cyrus.workspace.registry import MemberRegistry, init_workspace
from cyrus.workspace.scheduler import compute_build_order
from cyrus.workspace.scripts import ScriptRunner
from cyrus.workspace.status import collect_status
from cyrus.workspace.store import WorkspaceStore

LineSink = Callable[[str], None]


@dataclass(slots=True)
class WorkspaceInitCommand:
    """CLI input for workspace creation."""

    name: str
    description: str | None
    path: Path | None


@dataclass(slots=True)
class WorkspaceCommand:
    """CLI input for read-only commands that only need the workspace location."""

    workspace_root: Path | None


@dataclass(slots=True)
class MemberAddCommand:
    """CLI input for member registration."""

    workspace_root: Path | None
    name: str
    path: Path
    language: str | None
    create: bool
    build_order: int | None = None
    dependencies: tuple[str, ...] = ()


@dataclass(slots=True)
class MemberRemoveCommand:
    """CLI input for member removal."""

    workspace_root: Path | None
    name: str
    delete_files: bool


@dataclass(slots=True)
class MemberToggleCommand:
    """CLI input for enable/disable."""

    workspace_root: Path | None
    name: str
    enabled: bool


@dataclass(slots=True)
class DependencyCommand:
    """CLI input for dependency edits."""

    workspace_root: Path | None
    member: str
    depends_on: tuple[str, ...]
    remove: bool = False


@dataclass(slots=True)
class WorkspaceRunCommand:
    """CLI input for an ad hoc command across members."""

    workspace_root: Path | None
    command: str
    args: tuple[str, ...]
    members: tuple[str, ...]
    parallel: bool
    continue_on_error: bool | None


@dataclass(slots=True)
class WorkspaceBatchCommand:
    """CLI input for dependency-ordered build/test passes."""

    workspace_root: Path | None
    command: str
    args: tuple[str, ...]
    parallel: bool | None
    continue_on_error: bool | None


@dataclass(slots=True)
class ScriptAddCommand:
    """CLI input for script creation or replacement."""

    workspace_root: Path | None
    name: str
    command: str
    description: str
    members: tuple[str, ...]
    parallel: bool
    continue_on_error: bool


@dataclass(slots=True)
class ScriptNameCommand:
    """CLI input for commands addressing one script."""

    workspace_root: Path | None
    name: str


@dataclass(slots=True)
class WorkspaceConfigCommand:
    """CLI input for shared-config edits."""

    workspace_root: Path | None
    build_parallel: bool | None
    max_parallel_jobs: int | None
    environment: tuple[str, ...]
    unset_environment: tuple[str, ...]
    language_versions: tuple[str, ...]
    shared_dependencies: tuple[str, ...]
    shared_dev_dependencies: tuple[str, ...]


@dataclass(slots=True)
class WorkspaceImportCommand:
    """CLI input for descriptor import."""

    source: Path
    path: Path


@dataclass(slots=True)
class WorkspaceRunResult:
    """Execution summary to render in CLI."""

    lines: list[str]
    success: bool
    error: str | None = None


class WorkspaceCliController:
    """Coordinates workspace load, mutation, execution, and persistence per invocation."""

    def __init__(self, echo: LineSink | None = None) -> None:
        self.echo = echo or (lambda line: None)

    def init(self, command: WorkspaceInitCommand) -> list[str]:
        settings = _settings()
        root = command.path or Path.cwd() / command.name
        workspace = init_workspace(command.name, root, command.description)
        _store(settings).save(workspace)
        return [f"Workspace '{workspace.name}' initialized at {root}"]

    def add_member(self, command: MemberAddCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            member = registry.add_member(
                command.name,
                command.path,
                command.language,
                command.create,
                build_order=command.build_order,
                dependencies=command.dependencies,
            )
        return [f"Added member '{member.name}' ({member.language}) at {member.path.as_posix()}"]

    def remove_member(self, command: MemberRemoveCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            member = registry.remove_member(command.name, command.delete_files)
        lines = [f"Removed member '{member.name}' from workspace"]
        if command.delete_files:
            lines.append(f"Deleted files at {member.path.as_posix()}")
        return lines

    def set_enabled(self, command: MemberToggleCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            member = registry.set_enabled(command.name, command.enabled)
        return [f"Member '{member.name}' {'enabled' if member.enabled else 'disabled'}"]

    def edit_dependencies(self, command: DependencyCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            for depends_on in command.depends_on:
                if command.remove:
                    registry.remove_dependency(command.member, depends_on)
                else:
                    registry.add_dependency(command.member, depends_on)
            member = registry.get_member(command.member)
        deps = ", ".join(member.dependencies) or "-"
        return [f"Member '{member.name}' depends on: {deps}"]

    def list_members(self, command: WorkspaceCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        members = MemberRegistry(workspace).list_members()
        if not members:
            return ["No members in workspace"]

        lines = ["Workspace members:"]
        for member in members:
            state = "enabled" if member.enabled else "disabled"
            lines.append(f"  {member.name} ({member.language}) [{state}]")
            lines.append(f"    Path: {member.path.as_posix()}")
            if member.build_order is not None:
                lines.append(f"    Build order hint: {member.build_order}")
            if member.dependencies:
                lines.append(f"    Dependencies: {', '.join(member.dependencies)}")
        return lines

    def build_order(self, command: WorkspaceCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        batches = compute_build_order(workspace.members)
        if not batches:
            return ["No enabled members"]
        return [
            f"Batch {index}: {', '.join(member.name for member in batch)}"
            for index, batch in enumerate(batches, start=1)
        ]

    def status(self, command: WorkspaceCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        status = collect_status(workspace, settings.workspace.project_filename)
        lines = [
            f"Workspace: {status.name}",
            f"Root: {status.root_path}",
            f"Members: {status.total_members} total, {status.enabled_members} enabled",
        ]
        for member in status.member_statuses:
            flags = [
                "enabled" if member.enabled else "disabled",
                "present" if member.exists else "missing",
            ]
            if member.has_project_config:
                flags.append("project-config")
            lines.append(f"  {member.name} ({member.language}) {' '.join(flags)}")
            if member.last_modified is not None:
                lines.append(
                    f"    Last modified: {member.last_modified.strftime('%Y-%m-%d %H:%M:%S UTC')}",
                )
        return lines

    def run(self, command: WorkspaceRunCommand) -> WorkspaceRunResult:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        members = MemberRegistry(workspace).select_members(command.members or None)
        engine = self._engine(workspace, settings)
        continue_on_error = _continue_on_error(command.continue_on_error, settings)
        return _execute(
            lambda: engine.run(
                members,
                command.command,
                command.args,
                parallel=command.parallel,
                continue_on_error=continue_on_error,
            ),
            label=_command_label(command.command, command.args),
        )

    def run_batches(self, command: WorkspaceBatchCommand) -> WorkspaceRunResult:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        batches = compute_build_order(workspace.members)
        parallel = (
            workspace.shared_config.build_parallel if command.parallel is None else command.parallel
        )
        engine = self._engine(workspace, settings)
        continue_on_error = _continue_on_error(command.continue_on_error, settings)
        return _execute(
            lambda: engine.run_batches(
                batches,
                command.command,
                command.args,
                parallel=parallel,
                continue_on_error=continue_on_error,
            ),
            label=_command_label(command.command, command.args),
        )

    def add_script(self, command: ScriptAddCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            script = registry.add_script(
                WorkspaceScript(
                    name=command.name,
                    command=command.command,
                    description=command.description,
                    run_in_members=list(dict.fromkeys(command.members)),
                    run_parallel=command.parallel,
                    continue_on_error=command.continue_on_error,
                ),
            )
        return [f"Saved workspace script '{script.name}'"]

    def remove_script(self, command: ScriptNameCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            script = registry.remove_script(command.name)
        return [f"Removed workspace script '{script.name}'"]

    def list_scripts(self, command: WorkspaceCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        scripts = MemberRegistry(_load(settings)).list_scripts()
        if not scripts:
            return ["No workspace scripts"]
        lines = ["Workspace scripts:"]
        for script in scripts:
            targets = ", ".join(script.run_in_members) or "all enabled members"
            mode = "parallel" if script.run_parallel else "sequential"
            policy = "continue-on-error" if script.continue_on_error else "stop-on-error"
            lines.append(f"  {script.name}: {script.command}")
            if script.description:
                lines.append(f"    {script.description}")
            lines.append(f"    Targets: {targets} ({mode}, {policy})")
        return lines

    def run_script(self, command: ScriptNameCommand) -> WorkspaceRunResult:
        settings = _settings(command.workspace_root)
        workspace = _load(settings)
        runner = ScriptRunner(workspace, self._engine(workspace, settings))
        script = runner.resolve(command.name)
        return _execute(lambda: runner.run_script(command.name), label=script.name)

    def configure(self, command: WorkspaceConfigCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        with _mutating(settings) as registry:
            registry.configure(
                build_parallel=command.build_parallel,
                max_parallel_jobs=command.max_parallel_jobs,
                environment=_parse_pairs(command.environment, "--env"),
                unset_environment=command.unset_environment,
                language_versions=_parse_pairs(command.language_versions, "--language-version"),
            )
            for language, dependency in _split_pairs(command.shared_dependencies, "--shared-dep"):
                registry.add_shared_dependency(language, dependency)
            for language, dependency in _split_pairs(
                command.shared_dev_dependencies,
                "--shared-dev-dep",
            ):
                registry.add_shared_dependency(language, dependency, dev=True)
            workspace = registry.workspace
        return _render_config(workspace)

    def export(self, command: WorkspaceCommand) -> list[str]:
        settings = _settings(command.workspace_root)
        store = _store(settings)
        return store.export_text(_load(settings)).rstrip("\n").splitlines()

    def import_workspace(self, command: WorkspaceImportCommand) -> list[str]:
        settings = _settings()
        try:
            text = command.source.read_text("utf-8")
        except OSError as error:
            raise WorkspaceError(f"Failed to read {command.source}: {error}") from error
        command.path.mkdir(parents=True, exist_ok=True)
        workspace = _store(settings).import_text(text, command.path)
        return [
            f"Imported workspace '{workspace.name}' "
            f"with {len(workspace.members)} member(s) into {command.path}",
        ]

    def _engine(self, workspace: Workspace, settings: Settings) -> ExecutionEngine:
        return ExecutionEngine(
            root_path=workspace.root_path,
            resolver=DescriptorProjectResolver(settings.workspace.project_filename),
            shared_environment=workspace.shared_config.shared_environment,
            max_parallel_jobs=(
                settings.workspace.max_parallel_jobs or workspace.shared_config.max_parallel_jobs
            ),
            on_result=self._echo_result,
        )

    def _echo_result(self, result: MemberRunResult) -> None:
        state = "ok" if result.ok else f"FAILED (exit {result.exit_code})"
        command = " ".join(result.argv)
        self.echo(f"==> {result.member}: {command} {state} in {result.duration_seconds:.1f}s")
        for line in result.output.splitlines():
            self.echo(f"[{result.member}] {line}")


def _settings(workspace_root: Path | None = None) -> Settings:
    settings = Settings.from_env(workspace_root=workspace_root)
    settings.validate()
    return settings


def _store(settings: Settings) -> WorkspaceStore:
    return WorkspaceStore(settings.workspace.descriptor_filename)


def _resolve_root(settings: Settings) -> Path:
    if settings.workspace_root is not None:
        return settings.workspace_root
    cwd = Path.cwd()
    root = _store(settings).find_root(cwd)
    if root is None:
        raise WorkspaceNotFoundError(cwd)
    return root


def _load(settings: Settings) -> Workspace:
    return _store(settings).load(_resolve_root(settings))


@contextmanager
def _mutating(settings: Settings) -> Iterator[MemberRegistry]:
    """Yield a registry over a freshly loaded workspace; persist only if the block succeeds."""

    store = _store(settings)
    workspace = store.load(_resolve_root(settings))
    registry = MemberRegistry(
        workspace,
        scaffolder=TemplateScaffolder(settings.workspace.project_filename),
    )
    yield registry
    store.save(workspace)


def _continue_on_error(value: bool | None, settings: Settings) -> bool:
    return settings.workspace.continue_on_error if value is None else value


def _execute(run: Callable[[], RunReport], *, label: str) -> WorkspaceRunResult:
    try:
        report = run()
    except (CommandFailedError, AggregateFailureError) as error:
        return WorkspaceRunResult(lines=[], success=False, error=str(error))

    lines = [
        f"'{label}': {len(report.results) - len(report.failures)} succeeded, "
        f"{len(report.failures)} failed, {len(report.skipped)} skipped",
    ]
    if report.skipped:
        lines.append(f"Skipped (failed dependencies): {', '.join(report.skipped)}")
    try:
        report.raise_for_failures()
    except AggregateFailureError as error:
        return WorkspaceRunResult(lines=lines, success=False, error=str(error))
    if report.skipped:
        return WorkspaceRunResult(
            lines=lines,
            success=False,
            error=f"Skipped member(s): {', '.join(report.skipped)}",
        )
    return WorkspaceRunResult(lines=lines, success=True)


def _command_label(command: str, args: tuple[str, ...]) -> str:
    return shlex.join([command, *args])


def _parse_pairs(values: tuple[str, ...], option: str) -> dict[str, str]:
    return dict(_split_pairs(values, option))


def _split_pairs(values: tuple[str, ...], option: str) -> list[tuple[str, str]]:
    """KEY=VALUE items in command-line order; repeated keys are all kept."""

    pairs: list[tuple[str, str]] = []
    for value in values:
        key, separator, item = value.partition("=")
        if not separator or not key.strip():
            raise WorkspaceError(f"Invalid {option} value {value!r}. Expected KEY=VALUE.")
        pairs.append((key.strip(), item))
    return pairs


def _render_config(workspace: Workspace) -> list[str]:
    config = workspace.shared_config
    lines = [
        f"Parallel by default: {'yes' if config.build_parallel else 'no'}",
        f"Max parallel jobs: {config.max_parallel_jobs or '-'}",
    ]
    for key in sorted(config.shared_environment):
        lines.append(f"  env {key}={config.shared_environment[key]}")
    for language in sorted(config.default_language_versions):
        lines.append(f"  {language} version {config.default_language_versions[language]}")
    for label, mapping in (
        ("dependencies", workspace.dependencies.shared_dependencies),
        ("dev dependencies", workspace.dependencies.shared_dev_dependencies),
    ):
        for language in sorted(mapping):
            lines.append(f"  {language} {label}: {', '.join(mapping[language])}")
    return lines
