"""Read-only health summary of workspace members."""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from cyrus.project.descriptor import DEFAULT_PROJECT_FILENAME
from cyrus.workspace.models import MemberStatus, Workspace, WorkspaceStatus


def collect_status(
    workspace: Workspace,
    project_filename: str = DEFAULT_PROJECT_FILENAME,
) -> WorkspaceStatus:
    statuses: list[MemberStatus] = []
    for member in workspace.members:
        member_dir = workspace.member_dir(member)
        statuses.append(
            MemberStatus(
                name=member.name,
                language=member.language,
                enabled=member.enabled,
                exists=member_dir.exists(),
                has_project_config=(member_dir / project_filename).is_file(),
                last_modified=last_modified(member_dir),
            ),
        )
    return WorkspaceStatus(
        name=workspace.name,
        root_path=workspace.root_path,
        total_members=len(workspace.members),
        enabled_members=len(workspace.enabled_members()),
        member_statuses=statuses,
    )


def last_modified(path: Path) -> datetime | None:
    """Best-effort modification time; None when the path is missing or unreadable."""

    try:
        return datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
    except OSError:
        return None
