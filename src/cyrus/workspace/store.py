"""File-based persistence for the workspace descriptor."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any

from cyrus.workspace.errors import WorkspaceIOError, WorkspaceNotFoundError
from cyrus.workspace.models import (
    DependencySets,
    Member,
    SharedConfig,
    Workspace,
    WorkspaceScript,
)

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTOR_FILENAME = "cyrus-workspace.json"
DESCRIPTOR_VERSION = 1


class WorkspaceStore:
    """Loads and atomically saves `cyrus-workspace.json` under a workspace root."""

    def __init__(self, descriptor_filename: str = DEFAULT_DESCRIPTOR_FILENAME) -> None:
        self.descriptor_filename = descriptor_filename

    def descriptor_path(self, root: Path) -> Path:
        return root / self.descriptor_filename

    def exists(self, root: Path) -> bool:
        return self.descriptor_path(root).is_file()

    def find_root(self, start: Path) -> Path | None:
        """Walk up from `start` to the nearest directory holding a descriptor."""

        current = start.absolute()
        for candidate in (current, *current.parents):
            if self.exists(candidate):
                return candidate
        return None

    def load(self, root: Path) -> Workspace:
        path = self.descriptor_path(root)
        if not path.is_file():
            raise WorkspaceNotFoundError(root)
        try:
            text = path.read_text("utf-8")
        except OSError as error:
            raise WorkspaceIOError(f"Failed to read workspace config {path}: {error}") from error
        workspace = self.parse(text, root, source=path)
        logger.debug(
            "Loaded workspace %r with %d member(s)",
            workspace.name,
            len(workspace.members),
        )
        return workspace

    def save(self, workspace: Workspace) -> None:
        """Write the full descriptor; on failure the old file and `updated_at` are kept."""

        previous_updated_at = workspace.updated_at
        workspace.touch()
        path = self.descriptor_path(workspace.root_path)
        payload = self.export_text(workspace)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload, "utf-8")
            tmp.replace(path)
        except OSError as error:
            tmp.unlink(missing_ok=True)
            workspace.updated_at = previous_updated_at
            raise WorkspaceIOError(f"Failed to save workspace config {path}: {error}") from error
        logger.debug("Saved workspace %r to %s", workspace.name, path)

    def export_text(self, workspace: Workspace) -> str:
        payload = workspace_to_payload(workspace)
        return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"

    def parse(self, text: str, root: Path, *, source: Path | None = None) -> Workspace:
        where = source or root
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as error:
            raise WorkspaceIOError(f"Failed to parse workspace config {where}: {error}") from error
        if not isinstance(raw, dict):
            raise WorkspaceIOError(f"Expected JSON object in {where}")
        try:
            return workspace_from_payload(raw, root)
        except (TypeError, ValueError) as error:
            raise WorkspaceIOError(f"Invalid workspace config {where}: {error}") from error

    def import_text(self, text: str, root: Path) -> Workspace:
        """Adopt an exported descriptor under a new root and persist it."""

        workspace = self.parse(text, root)
        self.save(workspace)
        return workspace


def workspace_to_payload(workspace: Workspace) -> dict[str, Any]:
    config = workspace.shared_config
    return {
        "descriptor_version": DESCRIPTOR_VERSION,
        "name": workspace.name,
        "description": workspace.description,
        "members": [
            {
                "name": member.name,
                "path": member.path.as_posix(),
                "language": member.language,
                "enabled": member.enabled,
                "build_order": member.build_order,
                "dependencies": list(member.dependencies),
            }
            for member in workspace.members
        ],
        "shared_config": {
            "default_language_versions": dict(config.default_language_versions),
            "shared_environment": dict(config.shared_environment),
            "common_scripts": dict(config.common_scripts),
            "build_parallel": config.build_parallel,
            "max_parallel_jobs": config.max_parallel_jobs,
        },
        "dependencies": {
            "shared_dependencies": {
                key: list(values)
                for key, values in workspace.dependencies.shared_dependencies.items()
            },
            "shared_dev_dependencies": {
                key: list(values)
                for key, values in workspace.dependencies.shared_dev_dependencies.items()
            },
        },
        "scripts": {
            name: {
                "command": script.command,
                "description": script.description,
                "run_in_members": list(script.run_in_members),
                "run_parallel": script.run_parallel,
                "continue_on_error": script.continue_on_error,
            }
            for name, script in workspace.scripts.items()
        },
        "created_at": workspace.created_at.isoformat(),
        "updated_at": workspace.updated_at.isoformat(),
    }


def workspace_from_payload(raw: dict[str, Any], root: Path) -> Workspace:
    version = raw.get("descriptor_version", DESCRIPTOR_VERSION)
    if not isinstance(version, int) or version < 1:
        raise ValueError("descriptor_version must be an integer >= 1")
    if version > DESCRIPTOR_VERSION:
        raise ValueError(
            f"descriptor_version {version} is newer than supported ({DESCRIPTOR_VERSION})",
        )

    raw_members = raw.get("members", [])
    if not isinstance(raw_members, list):
        raise TypeError("members must be an array")
    raw_scripts = _require_object(raw.get("scripts", {}), "scripts")

    return Workspace(
        name=_require_str(raw.get("name"), "name", non_empty=True),
        description=_require_str(raw.get("description", ""), "description"),
        root_path=root,
        members=[_member_from_payload(item) for item in raw_members],
        shared_config=_shared_config_from_payload(
            _require_object(raw.get("shared_config", {}), "shared_config"),
        ),
        dependencies=_dependency_sets_from_payload(
            _require_object(raw.get("dependencies", {}), "dependencies"),
        ),
        scripts={
            name: _script_from_payload(name, _require_object(item, f"scripts.{name}"))
            for name, item in raw_scripts.items()
        },
        created_at=_require_datetime(raw.get("created_at"), "created_at"),
        updated_at=_require_datetime(raw.get("updated_at"), "updated_at"),
    )


def _member_from_payload(item: Any) -> Member:
    item = _require_object(item, "members[]")
    build_order = item.get("build_order")
    if build_order is not None and (
        not isinstance(build_order, int) or isinstance(build_order, bool)
    ):
        raise TypeError("members[].build_order must be an integer when provided")
    return Member(
        name=_require_str(item.get("name"), "members[].name", non_empty=True),
        path=Path(PurePosixPath(_require_str(item.get("path"), "members[].path", non_empty=True))),
        language=_require_str(item.get("language", "unknown"), "members[].language"),
        enabled=_require_bool(item.get("enabled", True), "members[].enabled"),
        build_order=build_order,
        dependencies=_require_str_list(item.get("dependencies", []), "members[].dependencies"),
    )


def _shared_config_from_payload(raw: dict[str, Any]) -> SharedConfig:
    defaults = SharedConfig()
    max_jobs = raw.get("max_parallel_jobs", defaults.max_parallel_jobs)
    if max_jobs is not None and (
        not isinstance(max_jobs, int) or isinstance(max_jobs, bool) or max_jobs < 1
    ):
        raise ValueError("shared_config.max_parallel_jobs must be a positive integer or null")
    return SharedConfig(
        default_language_versions=_require_str_map(
            raw.get("default_language_versions", {}),
            "shared_config.default_language_versions",
        ),
        shared_environment=_require_str_map(
            raw.get("shared_environment", {}),
            "shared_config.shared_environment",
        ),
        common_scripts=_require_str_map(
            raw.get("common_scripts", {}),
            "shared_config.common_scripts",
        ),
        build_parallel=_require_bool(
            raw.get("build_parallel", defaults.build_parallel),
            "shared_config.build_parallel",
        ),
        max_parallel_jobs=max_jobs,
    )


def _dependency_sets_from_payload(raw: dict[str, Any]) -> DependencySets:
    sets = DependencySets()
    for field_name in ("shared_dependencies", "shared_dev_dependencies"):
        mapping = _require_object(raw.get(field_name, {}), f"dependencies.{field_name}")
        setattr(
            sets,
            field_name,
            {
                language: _require_str_list(values, f"dependencies.{field_name}.{language}")
                for language, values in mapping.items()
            },
        )
    return sets


def _script_from_payload(name: str, raw: dict[str, Any]) -> WorkspaceScript:
    return WorkspaceScript(
        name=name,
        command=_require_str(raw.get("command"), f"scripts.{name}.command", non_empty=True),
        description=_require_str(raw.get("description", ""), f"scripts.{name}.description"),
        run_in_members=_require_str_list(
            raw.get("run_in_members", []),
            f"scripts.{name}.run_in_members",
        ),
        run_parallel=_require_bool(raw.get("run_parallel", False), f"scripts.{name}.run_parallel"),
        continue_on_error=_require_bool(
            raw.get("continue_on_error", False),
            f"scripts.{name}.continue_on_error",
        ),
    )


def _require_object(value: Any, where: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise TypeError(f"{where} must be an object")
    return value


def _require_str(value: Any, where: str, *, non_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{where} must be a string")
    if non_empty and not value.strip():
        raise ValueError(f"{where} must be a non-empty string")
    return value


def _require_bool(value: Any, where: str) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"{where} must be a boolean")
    return value


def _require_str_list(value: Any, where: str) -> list[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise TypeError(f"{where} must be an array of strings")
    return list(value)


def _require_str_map(value: Any, where: str) -> dict[str, str]:
    mapping = _require_object(value, where)
    if not all(isinstance(item, str) for item in mapping.values()):
        raise TypeError(f"{where} values must be strings")
    return dict(mapping)


def _require_datetime(value: Any, where: str) -> datetime:
    parsed = datetime.fromisoformat(_require_str(value, where, non_empty=True))
    if parsed.tzinfo is None:
        raise ValueError(f"{where} must include a timezone offset")
    return parsed
