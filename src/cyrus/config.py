"""Runtime configuration for workspace commands."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from cyrus.project.descriptor import DEFAULT_PROJECT_FILENAME
from cyrus.workspace.store import DEFAULT_DESCRIPTOR_FILENAME

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True)
class WorkspaceSettings:
    """Workspace file layout and execution limits."""

    descriptor_filename: str = DEFAULT_DESCRIPTOR_FILENAME
    project_filename: str = DEFAULT_PROJECT_FILENAME
    max_parallel_jobs: int | None = None
    continue_on_error: bool = False


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    workspace_root: Path | None = None
    log_level: str = "WARNING"
    workspace: WorkspaceSettings = field(default_factory=WorkspaceSettings)

    @classmethod
    def from_env(cls, workspace_root: Path | None = None) -> Settings:
        """Load settings from environment; explicit arguments win over variables."""

        root_env = os.getenv("CYRUS_WORKSPACE_ROOT", "").strip()
        return cls(
            workspace_root=workspace_root or (Path(root_env) if root_env else None),
            log_level=os.getenv("CYRUS_LOG_LEVEL", "WARNING").strip().upper(),
            workspace=WorkspaceSettings(
                descriptor_filename=os.getenv(
                    "CYRUS_WORKSPACE_FILE",
                    DEFAULT_DESCRIPTOR_FILENAME,
                ).strip(),
                project_filename=os.getenv("CYRUS_PROJECT_FILE", DEFAULT_PROJECT_FILENAME).strip(),
                max_parallel_jobs=_env_optional_int("CYRUS_MAX_PARALLEL_JOBS"),
                continue_on_error=_env_bool("CYRUS_CONTINUE_ON_ERROR", default=False),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error for unusable values."""

        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"CYRUS_LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}: {self.log_level!r}",
            )
        _validate_filename("CYRUS_WORKSPACE_FILE", self.workspace.descriptor_filename)
        _validate_filename("CYRUS_PROJECT_FILE", self.workspace.project_filename)
        if self.workspace.max_parallel_jobs is not None and self.workspace.max_parallel_jobs <= 0:
            raise ValueError("CYRUS_MAX_PARALLEL_JOBS must be > 0.")

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)


def _validate_filename(name: str, value: str) -> None:
    if not value or value in {".", ".."} or "/" in value or "\\" in value:
        raise ValueError(f"{name} must be a bare file name: {value!r}")


def _env_optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as error:
        raise ValueError(f"Invalid integer value for {name}: {raw!r}") from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
