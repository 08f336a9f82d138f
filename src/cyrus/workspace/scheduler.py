"""Layered topological ordering of workspace members."""

from __future__ import annotations

from collections.abc import Sequence

from cyrus.workspace.errors import CircularDependencyError
from cyrus.workspace.models import Member

ExecutionBatch = list[Member]


def compute_build_order(members: Sequence[Member]) -> list[ExecutionBatch]:
    """Group enabled members into batches whose dependencies sit in earlier batches.

    Each pass collects, in registry order, every unplaced member whose
    dependencies are already placed. Dependencies naming a disabled or unknown
    member are satisfied by absence. A pass that places nobody means the
    remaining members contain a cycle; all of them are reported.
    """

    enabled = [member for member in members if member.enabled]
    in_graph = {member.name for member in enabled}
    placed: set[str] = set()
    remaining = list(enabled)
    batches: list[ExecutionBatch] = []

    while remaining:
        batch = [
            member
            for member in remaining
            if all(dep in placed or dep not in in_graph for dep in member.dependencies)
        ]
        if not batch:
            raise CircularDependencyError(member.name for member in remaining)
        # Mark after the scan so a batch never satisfies its own members.
        placed.update(member.name for member in batch)
        remaining = [member for member in remaining if member.name not in placed]
        batches.append(batch)

    return batches
