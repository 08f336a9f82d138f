"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

import pytest

from cyrus.workspace.models import Member, Workspace

WorkspaceFactory = Callable[..., Workspace]
ProjectTomlWriter = Callable[..., None]


@pytest.fixture()
def project_toml() -> ProjectTomlWriter:
    """Write a `cyrus.toml` with string tables; values are JSON-quoted into valid TOML."""

    def _write(member_dir: Path, tables: Mapping[str, Mapping[str, str]], **top: str) -> None:
        lines = [f"{key} = {json.dumps(value)}" for key, value in top.items()]
        for table, values in tables.items():
            lines.extend(["", f"[{table}]"])
            lines.extend(f"{key} = {json.dumps(value)}" for key, value in values.items())
        (member_dir / "cyrus.toml").write_text("\n".join(lines) + "\n", "utf-8")

    return _write


@pytest.fixture()
def clean_env(monkeypatch):
    """Drop CYRUS_* variables inherited from the developer shell."""

    for name in (
        "CYRUS_WORKSPACE_ROOT",
        "CYRUS_WORKSPACE_FILE",
        "CYRUS_PROJECT_FILE",
        "CYRUS_MAX_PARALLEL_JOBS",
        "CYRUS_CONTINUE_ON_ERROR",
        "CYRUS_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def make_workspace(tmp_path: Path) -> WorkspaceFactory:
    """Build an in-memory workspace whose member directories exist under tmp_path."""

    def _make(
        dependencies: Mapping[str, Sequence[str]],
        *,
        disabled: Sequence[str] = (),
        name: str = "demo",
    ) -> Workspace:
        root = tmp_path / name
        members = []
        for member_name, deps in dependencies.items():
            (root / member_name).mkdir(parents=True, exist_ok=True)
            members.append(
                Member(
                    name=member_name,
                    path=Path(member_name),
                    enabled=member_name not in disabled,
                    dependencies=list(deps),
                ),
            )
        return Workspace(name=name, root_path=root, members=members)

    return _make
