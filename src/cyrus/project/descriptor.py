"""Per-project `cyrus.toml` descriptor and command alias resolution."""

from __future__ import annotations

import shlex
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from cyrus.workspace.errors import ProjectConfigError

DEFAULT_PROJECT_FILENAME = "cyrus.toml"

# Commands forwarded to the package manager (`npm test` instead of `test`).
_PACKAGE_MANAGER_COMMANDS: dict[tuple[str, str], tuple[str, ...]] = {
    ("javascript", "npm"): ("install", "run", "start", "test", "build"),
    ("javascript", "yarn"): ("add", "run", "start", "test", "build", "dev"),
    ("javascript", "pnpm"): ("add", "run", "start", "test", "build", "dev"),
    ("javascript", "bun"): ("add", "run", "start", "test", "build", "dev"),
    ("python", "poetry"): ("install", "add", "run", "shell"),
    ("python", "pipenv"): ("install", "shell", "run"),
}


@dataclass(slots=True)
class ProjectDescriptor:
    """Subset of a member's own project config needed to run commands in it."""

    name: str
    language: str
    version: str = "latest"
    package_manager: str = ""
    scripts: dict[str, str] = field(default_factory=dict)
    environment: dict[str, str] = field(default_factory=dict)
    enable_aliases: bool = True
    custom_aliases: dict[str, str] = field(default_factory=dict)

    def aliased_command(self, command: str) -> str | None:
        if not self.enable_aliases:
            return None
        if command in self.custom_aliases:
            return self.custom_aliases[command]
        return self.scripts.get(command)

    def resolve_command(self, command: str, args: list[str]) -> list[str]:
        """Map a logical command to argv: custom alias, then script, then package manager."""

        aliased = self.aliased_command(command)
        if aliased is not None:
            parts = shlex.split(aliased)
            if parts:
                return [*parts, *args]

        forwarded = _PACKAGE_MANAGER_COMMANDS.get((self.language, self.package_manager), ())
        if command in forwarded:
            return [self.package_manager, command, *args]
        return [command, *args]


@dataclass(slots=True)
class ResolvedCommand:
    """Concrete invocation for one member."""

    argv: list[str]
    environment: dict[str, str] = field(default_factory=dict)
    via_project: bool = False


class ProjectResolver(Protocol):
    """Resolves what a command means inside one member directory."""

    def has_project(self, member_dir: Path) -> bool:
        """Return whether the directory carries a recognized project config."""

    def resolve(self, member_dir: Path, command: str, args: list[str]) -> ResolvedCommand:
        """Return the argv and extra environment for the command."""


class DescriptorProjectResolver:
    """Default resolver reading `cyrus.toml` from the member directory."""

    def __init__(self, filename: str = DEFAULT_PROJECT_FILENAME) -> None:
        self.filename = filename

    def has_project(self, member_dir: Path) -> bool:
        return (member_dir / self.filename).is_file()

    def resolve(self, member_dir: Path, command: str, args: list[str]) -> ResolvedCommand:
        if not self.has_project(member_dir):
            return ResolvedCommand(argv=[command, *args])
        descriptor = load_project_descriptor(member_dir / self.filename)
        return ResolvedCommand(
            argv=descriptor.resolve_command(command, args),
            environment=dict(descriptor.environment),
            via_project=True,
        )


def load_project_descriptor(path: Path) -> ProjectDescriptor:
    try:
        raw = tomllib.loads(path.read_text("utf-8"))
    except OSError as error:
        raise ProjectConfigError(f"Failed to read {path}: {error}") from error
    except tomllib.TOMLDecodeError as error:
        raise ProjectConfigError(f"Failed to parse {path}: {error}") from error

    name = raw.get("name")
    language = raw.get("language")
    if not isinstance(name, str) or not name.strip():
        raise ProjectConfigError(f"{path}: name must be a non-empty string")
    if not isinstance(language, str) or not language.strip():
        raise ProjectConfigError(f"{path}: language must be a non-empty string")
    enable_aliases = raw.get("enable_aliases", True)
    if not isinstance(enable_aliases, bool):
        raise ProjectConfigError(f"{path}: enable_aliases must be a boolean")

    return ProjectDescriptor(
        name=name,
        language=language,
        version=str(raw.get("version", "latest")),
        package_manager=str(raw.get("package_manager", "")),
        scripts=_str_table(raw, "scripts", path),
        environment=_str_table(raw, "environment", path),
        enable_aliases=enable_aliases,
        custom_aliases=_str_table(raw, "custom_aliases", path),
    )


def _str_table(raw: dict[str, Any], key: str, path: Path) -> dict[str, str]:
    table = raw.get(key, {})
    if not isinstance(table, dict):
        raise ProjectConfigError(f"{path}: [{key}] must be a table")
    values: dict[str, str] = {}
    for name, value in table.items():
        if not isinstance(value, str):
            raise ProjectConfigError(f"{path}: {key}.{name} must be a string")
        values[name] = value
    return values
