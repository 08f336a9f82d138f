from __future__ import annotations

from datetime import UTC, datetime

import allure

from cyrus.workspace.status import collect_status, last_modified

pytestmark = [
    allure.epic("Workspace"),
    allure.feature("Status"),
]


def test_status_reports_presence_config_and_totals(make_workspace, project_toml) -> None:
    workspace = make_workspace({"api": [], "web": [], "gone": []}, disabled=["web"])
    project_toml(workspace.root_path / "api", {}, name="api", language="python")
    (workspace.root_path / "gone").rmdir()

    status = collect_status(workspace)

    assert status.name == "demo"
    assert status.root_path == workspace.root_path
    assert status.total_members == 3
    assert status.enabled_members == 2
    by_name = {member.name: member for member in status.member_statuses}
    assert by_name["api"].exists is True
    assert by_name["api"].has_project_config is True
    assert by_name["web"].enabled is False
    assert by_name["web"].has_project_config is False
    assert by_name["gone"].exists is False
    assert by_name["gone"].last_modified is None


def test_status_uses_custom_project_filename(make_workspace) -> None:
    workspace = make_workspace({"api": []})
    (workspace.root_path / "api" / "project.toml").write_text("", "utf-8")

    status = collect_status(workspace, project_filename="project.toml")

    assert status.member_statuses[0].has_project_config is True


def test_last_modified_is_timezone_aware(tmp_path) -> None:
    stamp = last_modified(tmp_path)

    assert stamp is not None
    assert stamp.tzinfo == UTC
    assert stamp <= datetime.now(tz=UTC)
