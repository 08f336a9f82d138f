"""CLI entrypoint for cyrus."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from cyrus import __version__
from cyrus.config import Settings
from cyrus.workspace.controllers import (
    DependencyCommand,
    MemberAddCommand,
    MemberRemoveCommand,
    MemberToggleCommand,
    ScriptAddCommand,
    ScriptNameCommand,
    WorkspaceBatchCommand,
    WorkspaceCliController,
    WorkspaceCommand,
    WorkspaceConfigCommand,
    WorkspaceImportCommand,
    WorkspaceInitCommand,
    WorkspaceRunCommand,
    WorkspaceRunResult,
)
from cyrus.workspace.errors import WorkspaceError

click.rich_click.USE_MARKDOWN = True
WORKSPACE_CONTROLLER = WorkspaceCliController(echo=click.echo)
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_root_option = click.option(
    "--root",
    "workspace_root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Workspace root. Discovered from the current directory when omitted.",
)
_passthrough = {"ignore_unknown_options": True, "allow_interspersed_args": False}


@click.group()
@click.version_option(version=__version__, prog_name="cyrus")
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase log verbosity (-v info, -vv debug). Overrides CYRUS_LOG_LEVEL.",
)
def cyrus(verbose: int) -> None:
    """Cyrus multi-project workspace manager."""

    with _cli_errors():
        _configure_logging(verbose)


@cyrus.group()
def workspace() -> None:
    """Workspace commands."""


@workspace.command("init")
@click.argument("name")
@click.option("--description", default=None, help="Workspace description.")
@click.option(
    "--path",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Workspace directory. Defaults to ./NAME.",
)
def workspace_init(name: str, description: str | None, path: Path | None) -> None:
    """Create a new workspace in an empty directory."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.init(
                WorkspaceInitCommand(name=name, description=description, path=path),
            ),
        )


@workspace.command("add")
@click.argument("name")
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--language", default=None, help="Member language. Detected when omitted.")
@click.option(
    "--create/--no-create",
    default=False,
    show_default=True,
    help="Scaffold the member directory and project file.",
)
@click.option("--build-order", type=int, default=None, help="Informational build order hint.")
@click.option(
    "--depends-on",
    "dependencies",
    multiple=True,
    help="Member this one depends on. Can be repeated.",
)
@_root_option
def workspace_add(  # noqa: PLR0913
    name: str,
    path: Path,
    language: str | None,
    create: bool,
    build_order: int | None,
    dependencies: tuple[str, ...],
    workspace_root: Path | None,
) -> None:
    """Register a project directory (relative to the workspace root) as a member."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.add_member(
                MemberAddCommand(
                    workspace_root=workspace_root,
                    name=name,
                    path=path,
                    language=language,
                    create=create,
                    build_order=build_order,
                    dependencies=dependencies,
                ),
            ),
        )


@workspace.command("remove")
@click.argument("name")
@click.option(
    "--delete-files/--keep-files",
    default=False,
    show_default=True,
    help="Also delete the member directory.",
)
@_root_option
def workspace_remove(name: str, delete_files: bool, workspace_root: Path | None) -> None:
    """Remove a member and every reference to it."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.remove_member(
                MemberRemoveCommand(
                    workspace_root=workspace_root,
                    name=name,
                    delete_files=delete_files,
                ),
            ),
        )


@workspace.command("list")
@_root_option
def workspace_list(workspace_root: Path | None) -> None:
    """List workspace members."""

    with _cli_errors():
        _emit_lines(WORKSPACE_CONTROLLER.list_members(WorkspaceCommand(workspace_root)))


@workspace.command("enable")
@click.argument("name")
@_root_option
def workspace_enable(name: str, workspace_root: Path | None) -> None:
    """Include a member in runs and build order."""

    _toggle(name, workspace_root, enabled=True)


@workspace.command("disable")
@click.argument("name")
@_root_option
def workspace_disable(name: str, workspace_root: Path | None) -> None:
    """Exclude a member from runs and build order without removing it."""

    _toggle(name, workspace_root, enabled=False)


@workspace.command("depend")
@click.argument("member")
@click.argument("depends_on", nargs=-1, required=True)
@_root_option
def workspace_depend(member: str, depends_on: tuple[str, ...], workspace_root: Path | None) -> None:
    """Make MEMBER run after each of DEPENDS_ON."""

    _edit_dependencies(member, depends_on, workspace_root, remove=False)


@workspace.command("undepend")
@click.argument("member")
@click.argument("depends_on", nargs=-1, required=True)
@_root_option
def workspace_undepend(
    member: str,
    depends_on: tuple[str, ...],
    workspace_root: Path | None,
) -> None:
    """Drop dependency edges from MEMBER."""

    _edit_dependencies(member, depends_on, workspace_root, remove=True)


@workspace.command("run", context_settings=_passthrough)
@click.option(
    "--member",
    "members",
    multiple=True,
    help="Restrict to this member. Can be repeated. Defaults to all enabled members.",
)
@click.option(
    "--parallel/--sequential",
    default=False,
    show_default=True,
    help="Run members concurrently.",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=None,
    help="Keep going after a member fails. Defaults to CYRUS_CONTINUE_ON_ERROR.",
)
@_root_option
@click.argument("command")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def workspace_run(  # noqa: PLR0913
    members: tuple[str, ...],
    parallel: bool,
    continue_on_error: bool | None,
    workspace_root: Path | None,
    command: str,
    args: tuple[str, ...],
) -> None:
    """Run COMMAND in every selected member directory, ignoring build order."""

    with _cli_errors():
        _emit_run_result(
            WORKSPACE_CONTROLLER.run(
                WorkspaceRunCommand(
                    workspace_root=workspace_root,
                    command=command,
                    args=args,
                    members=members,
                    parallel=parallel,
                    continue_on_error=continue_on_error,
                ),
            ),
        )


@workspace.command("build", context_settings=_passthrough)
@click.option(
    "--parallel/--sequential",
    default=None,
    help="Run each batch concurrently. Defaults to the workspace build_parallel setting.",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=None,
    help="Keep going after a member fails. Defaults to CYRUS_CONTINUE_ON_ERROR.",
)
@_root_option
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def workspace_build(
    parallel: bool | None,
    continue_on_error: bool | None,
    workspace_root: Path | None,
    args: tuple[str, ...],
) -> None:
    """Build all enabled members in dependency order."""

    _run_batches("build", args, parallel, continue_on_error, workspace_root)


@workspace.command("test", context_settings=_passthrough)
@click.option(
    "--parallel/--sequential",
    default=None,
    help="Run each batch concurrently. Defaults to the workspace build_parallel setting.",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=None,
    help="Keep going after a member fails. Defaults to CYRUS_CONTINUE_ON_ERROR.",
)
@_root_option
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
def workspace_test(
    parallel: bool | None,
    continue_on_error: bool | None,
    workspace_root: Path | None,
    args: tuple[str, ...],
) -> None:
    """Test all enabled members in dependency order."""

    _run_batches("test", args, parallel, continue_on_error, workspace_root)


@workspace.command("status")
@_root_option
def workspace_status(workspace_root: Path | None) -> None:
    """Show member directory health."""

    with _cli_errors():
        _emit_lines(WORKSPACE_CONTROLLER.status(WorkspaceCommand(workspace_root)))


@workspace.command("order")
@_root_option
def workspace_order(workspace_root: Path | None) -> None:
    """Print the dependency batches used by build and test."""

    with _cli_errors():
        _emit_lines(WORKSPACE_CONTROLLER.build_order(WorkspaceCommand(workspace_root)))


@workspace.command("config")
@click.option(
    "--parallel/--sequential",
    "build_parallel",
    default=None,
    help="Default batch mode for build and test.",
)
@click.option("--max-jobs", type=click.IntRange(min=1), default=None, help="Parallel job bound.")
@click.option("--env", "environment", multiple=True, help="Shared KEY=VALUE. Can be repeated.")
@click.option("--unset-env", multiple=True, help="Shared variable to drop. Can be repeated.")
@click.option(
    "--language-version",
    "language_versions",
    multiple=True,
    help="Default LANGUAGE=VERSION for scaffolded members. Can be repeated.",
)
@click.option(
    "--shared-dep",
    "shared_dependencies",
    multiple=True,
    help="Shared LANGUAGE=DEPENDENCY. Can be repeated.",
)
@click.option(
    "--shared-dev-dep",
    "shared_dev_dependencies",
    multiple=True,
    help="Shared dev LANGUAGE=DEPENDENCY. Can be repeated.",
)
@_root_option
def workspace_config(  # noqa: PLR0913
    build_parallel: bool | None,
    max_jobs: int | None,
    environment: tuple[str, ...],
    unset_env: tuple[str, ...],
    language_versions: tuple[str, ...],
    shared_dependencies: tuple[str, ...],
    shared_dev_dependencies: tuple[str, ...],
    workspace_root: Path | None,
) -> None:
    """Show or update shared workspace configuration."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.configure(
                WorkspaceConfigCommand(
                    workspace_root=workspace_root,
                    build_parallel=build_parallel,
                    max_parallel_jobs=max_jobs,
                    environment=environment,
                    unset_environment=unset_env,
                    language_versions=language_versions,
                    shared_dependencies=shared_dependencies,
                    shared_dev_dependencies=shared_dev_dependencies,
                ),
            ),
        )


@workspace.command("export")
@_root_option
def workspace_export(workspace_root: Path | None) -> None:
    """Print the workspace descriptor as JSON."""

    with _cli_errors():
        _emit_lines(WORKSPACE_CONTROLLER.export(WorkspaceCommand(workspace_root)))


@workspace.command("import")
@click.argument("source", type=click.Path(path_type=Path, dir_okay=False, exists=True))
@click.option(
    "--path",
    type=click.Path(path_type=Path, file_okay=False),
    default=Path(),
    show_default=True,
    help="Directory that becomes the workspace root.",
)
def workspace_import(source: Path, path: Path) -> None:
    """Create a workspace from an exported descriptor."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.import_workspace(
                WorkspaceImportCommand(source=source, path=path),
            ),
        )


@workspace.group()
def script() -> None:
    """Named commands run across members."""


@script.command("add")
@click.argument("name")
@click.argument("command")
@click.option("--description", default="", help="Script description.")
@click.option(
    "--member",
    "members",
    multiple=True,
    help="Target member. Can be repeated. Defaults to all enabled members.",
)
@click.option(
    "--parallel/--sequential",
    default=False,
    show_default=True,
    help="Run members concurrently.",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=False,
    show_default=True,
    help="Keep going after a member fails.",
)
@_root_option
def script_add(  # noqa: PLR0913
    name: str,
    command: str,
    description: str,
    members: tuple[str, ...],
    parallel: bool,
    continue_on_error: bool,
    workspace_root: Path | None,
) -> None:
    """Save COMMAND as a workspace script named NAME."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.add_script(
                ScriptAddCommand(
                    workspace_root=workspace_root,
                    name=name,
                    command=command,
                    description=description,
                    members=members,
                    parallel=parallel,
                    continue_on_error=continue_on_error,
                ),
            ),
        )


@script.command("remove")
@click.argument("name")
@_root_option
def script_remove(name: str, workspace_root: Path | None) -> None:
    """Delete a workspace script."""

    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.remove_script(
                ScriptNameCommand(workspace_root=workspace_root, name=name),
            ),
        )


@script.command("list")
@_root_option
def script_list(workspace_root: Path | None) -> None:
    """List workspace scripts."""

    with _cli_errors():
        _emit_lines(WORKSPACE_CONTROLLER.list_scripts(WorkspaceCommand(workspace_root)))


@script.command("run")
@click.argument("name")
@_root_option
def script_run(name: str, workspace_root: Path | None) -> None:
    """Run a workspace script."""

    with _cli_errors():
        _emit_run_result(
            WORKSPACE_CONTROLLER.run_script(
                ScriptNameCommand(workspace_root=workspace_root, name=name),
            ),
        )


def _toggle(name: str, workspace_root: Path | None, *, enabled: bool) -> None:
    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.set_enabled(
                MemberToggleCommand(workspace_root=workspace_root, name=name, enabled=enabled),
            ),
        )


def _edit_dependencies(
    member: str,
    depends_on: tuple[str, ...],
    workspace_root: Path | None,
    *,
    remove: bool,
) -> None:
    with _cli_errors():
        _emit_lines(
            WORKSPACE_CONTROLLER.edit_dependencies(
                DependencyCommand(
                    workspace_root=workspace_root,
                    member=member,
                    depends_on=depends_on,
                    remove=remove,
                ),
            ),
        )


def _run_batches(
    command: str,
    args: tuple[str, ...],
    parallel: bool | None,
    continue_on_error: bool | None,
    workspace_root: Path | None,
) -> None:
    with _cli_errors():
        _emit_run_result(
            WORKSPACE_CONTROLLER.run_batches(
                WorkspaceBatchCommand(
                    workspace_root=workspace_root,
                    command=command,
                    args=args,
                    parallel=parallel,
                    continue_on_error=continue_on_error,
                ),
            ),
        )


def _configure_logging(verbose: int) -> None:
    if verbose >= 2:  # noqa: PLR2004
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        settings = Settings.from_env()
        settings.validate()
        level = settings.log_level_value
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


@contextmanager
def _cli_errors() -> Iterator[None]:
    try:
        yield
    except (WorkspaceError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_run_result(result: WorkspaceRunResult) -> None:
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException(result.error or "Command failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    cyrus()
