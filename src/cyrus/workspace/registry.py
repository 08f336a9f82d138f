"""In-memory member, script, and shared-config management for one workspace."""

from __future__ import annotations

import logging
import shutil
from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from cyrus.project.scaffold import ProjectScaffolder, TemplateScaffolder
from cyrus.workspace.errors import (
    DuplicateMemberError,
    InvalidMemberPathError,
    MemberNotFoundError,
    MemberPathNotFoundError,
    ScriptNotFoundError,
    WorkspaceError,
    WorkspaceIOError,
    WorkspaceNotEmptyError,
)
from cyrus.workspace.models import Member, Workspace, WorkspaceScript
from cyrus.workspace.scheduler import compute_build_order

logger = logging.getLogger(__name__)

UNKNOWN_LANGUAGE = "unknown"

LANGUAGE_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("javascript", ("package.json",)),
    ("rust", ("Cargo.toml",)),
    ("python", ("requirements.txt", "pyproject.toml")),
    ("golang", ("go.mod",)),
    ("java", ("pom.xml", "build.gradle")),
    ("php", ("composer.json",)),
    ("ruby", ("Gemfile",)),
)


def init_workspace(name: str, root: Path, description: str | None = None) -> Workspace:
    """Create a fresh workspace rooted at an empty or non-existent directory."""

    if root.exists():
        if not root.is_dir() or any(root.iterdir()):
            raise WorkspaceNotEmptyError(root)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        raise WorkspaceIOError(f"Failed to create workspace directory {root}: {error}") from error
    return Workspace(
        name=name,
        root_path=root,
        description=description if description is not None else f"{name} workspace",
    )


def detect_language(path: Path) -> str | None:
    for language, markers in LANGUAGE_MARKERS:
        if any((path / marker).exists() for marker in markers):
            return language
    return None


class MemberRegistry:
    """Validating mutations over a loaded workspace."""

    def __init__(
        self,
        workspace: Workspace,
        *,
        scaffolder: ProjectScaffolder | None = None,
    ) -> None:
        self.workspace = workspace
        self.scaffolder = scaffolder or TemplateScaffolder()

    def list_members(self) -> list[Member]:
        return list(self.workspace.members)

    def get_member(self, name: str) -> Member:
        member = self.workspace.find_member(name)
        if member is None:
            raise MemberNotFoundError(name)
        return member

    def add_member(  # noqa: PLR0913
        self,
        name: str,
        path: Path,
        language: str | None = None,
        create_project: bool = False,
        *,
        build_order: int | None = None,
        dependencies: Iterable[str] = (),
    ) -> Member:
        if self.workspace.find_member(name) is not None:
            raise DuplicateMemberError(name)
        dependency_names = _unique(dependencies)
        for dependency in dependency_names:
            self.get_member(dependency)

        member_dir = self._contained_dir(path)
        if create_project:
            version = self.workspace.shared_config.default_language_versions.get(
                language or "",
                "latest",
            )
            try:
                self.scaffolder.scaffold(member_dir, name=name, language=language, version=version)
            except OSError as error:
                raise WorkspaceIOError(
                    f"Failed to create project for member '{name}' at {member_dir}: {error}",
                ) from error
        elif not member_dir.is_dir():
            raise MemberPathNotFoundError(member_dir)

        member = Member(
            name=name,
            path=path,
            language=language or detect_language(member_dir) or UNKNOWN_LANGUAGE,
            build_order=build_order,
            dependencies=dependency_names,
        )
        self.workspace.members.append(member)
        self.workspace.touch()
        logger.info("Added member %r (%s) at %s", name, member.language, member_dir)
        return member

    def remove_member(self, name: str, delete_files: bool = False) -> Member:
        member = self.get_member(name)
        if delete_files:
            member_dir = self._contained_dir(member.path)
            if member_dir.exists():
                try:
                    shutil.rmtree(member_dir)
                except OSError as error:
                    raise WorkspaceIOError(
                        f"Failed to delete files for member '{name}': {error}",
                    ) from error
                logger.info("Deleted files for member %r at %s", name, member_dir)

        self.workspace.members.remove(member)
        for other in self.workspace.members:
            if name in other.dependencies:
                other.dependencies.remove(name)
        for script in self.workspace.scripts.values():
            if name in script.run_in_members:
                script.run_in_members.remove(name)
        self.workspace.touch()
        return member

    def _contained_dir(self, path: Path) -> Path:
        """Member directory for `path`; must sit strictly below the workspace root."""

        root = self.workspace.root_path.resolve()
        member_dir = (self.workspace.root_path / path).resolve()
        if root not in member_dir.parents:
            raise InvalidMemberPathError(path, self.workspace.root_path)
        return self.workspace.root_path / path

    def set_enabled(self, name: str, enabled: bool) -> Member:
        member = self.get_member(name)
        member.enabled = enabled
        self.workspace.touch()
        return member

    def add_dependency(self, name: str, depends_on: str) -> Member:
        """Record that `name` runs after `depends_on`; refuses edges that close a cycle."""

        member = self.get_member(name)
        self.get_member(depends_on)
        if depends_on in member.dependencies:
            return member

        # Check the whole graph, disabled members included, so re-enabling stays valid.
        graph = [
            replace(
                other,
                enabled=True,
                dependencies=(
                    [*other.dependencies, depends_on] if other is member else other.dependencies
                ),
            )
            for other in self.workspace.members
        ]
        compute_build_order(graph)

        member.dependencies.append(depends_on)
        self.workspace.touch()
        return member

    def remove_dependency(self, name: str, depends_on: str) -> Member:
        member = self.get_member(name)
        if depends_on not in member.dependencies:
            raise WorkspaceError(f"Member '{name}' does not depend on '{depends_on}'")
        member.dependencies.remove(depends_on)
        self.workspace.touch()
        return member

    def select_members(self, names: Iterable[str] | None = None) -> list[Member]:
        """Enabled members in registry order, optionally restricted to `names`."""

        if names is None:
            return self.workspace.enabled_members()
        wanted = _unique(names)
        for name in wanted:
            self.get_member(name)
        return [
            member
            for member in self.workspace.members
            if member.enabled and member.name in wanted
        ]

    def add_script(self, script: WorkspaceScript) -> WorkspaceScript:
        for name in script.run_in_members:
            self.get_member(name)
        self.workspace.scripts[script.name] = script
        self.workspace.touch()
        return script

    def get_script(self, name: str) -> WorkspaceScript:
        script = self.workspace.scripts.get(name)
        if script is None:
            raise ScriptNotFoundError(name)
        return script

    def remove_script(self, name: str) -> WorkspaceScript:
        script = self.get_script(name)
        del self.workspace.scripts[name]
        self.workspace.touch()
        return script

    def list_scripts(self) -> list[WorkspaceScript]:
        return [self.workspace.scripts[name] for name in sorted(self.workspace.scripts)]

    def configure(  # noqa: PLR0913
        self,
        *,
        build_parallel: bool | None = None,
        max_parallel_jobs: int | None = None,
        environment: dict[str, str] | None = None,
        unset_environment: Iterable[str] = (),
        language_versions: dict[str, str] | None = None,
    ) -> None:
        config = self.workspace.shared_config
        if build_parallel is not None:
            config.build_parallel = build_parallel
        if max_parallel_jobs is not None:
            if max_parallel_jobs < 1:
                raise ValueError("max_parallel_jobs must be >= 1")
            config.max_parallel_jobs = max_parallel_jobs
        config.shared_environment.update(environment or {})
        for key in unset_environment:
            config.shared_environment.pop(key, None)
        config.default_language_versions.update(language_versions or {})
        self.workspace.touch()

    def add_shared_dependency(self, language: str, dependency: str, *, dev: bool = False) -> None:
        sets = self.workspace.dependencies
        mapping = sets.shared_dev_dependencies if dev else sets.shared_dependencies
        values = mapping.setdefault(language, [])
        if dependency not in values:
            values.append(dependency)
        self.workspace.touch()


def _unique(names: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for name in names:
        if name not in seen:
            seen.append(name)
    return seen
