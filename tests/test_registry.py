from __future__ import annotations

import tomllib
from pathlib import Path

import allure
import pytest

from cyrus.workspace.errors import (
    CircularDependencyError,
    DuplicateMemberError,
    InvalidMemberPathError,
    MemberNotFoundError,
    MemberPathNotFoundError,
    ScriptNotFoundError,
    WorkspaceError,
    WorkspaceNotEmptyError,
)
from cyrus.workspace.models import Member, Workspace, WorkspaceScript
from cyrus.workspace.registry import MemberRegistry, detect_language, init_workspace

pytestmark = [
    allure.epic("Workspace"),
    allure.feature("Member Registry"),
]


def test_init_workspace_creates_directory_with_default_description(tmp_path: Path) -> None:
    root = tmp_path / "platform"

    workspace = init_workspace("platform", root)

    assert root.is_dir()
    assert workspace.description == "platform workspace"
    assert workspace.members == []
    assert workspace.shared_config.build_parallel is True


def test_init_workspace_accepts_existing_empty_directory(tmp_path: Path) -> None:
    workspace = init_workspace("demo", tmp_path, description="Demo")

    assert workspace.root_path == tmp_path
    assert workspace.description == "Demo"


def test_init_workspace_refuses_non_empty_directory(tmp_path: Path) -> None:
    (tmp_path / "README.md").write_text("hello", "utf-8")

    with pytest.raises(WorkspaceNotEmptyError):
        init_workspace("demo", tmp_path)


@pytest.mark.parametrize(
    ("marker", "language"),
    [
        ("package.json", "javascript"),
        ("Cargo.toml", "rust"),
        ("pyproject.toml", "python"),
        ("requirements.txt", "python"),
        ("go.mod", "golang"),
        ("build.gradle", "java"),
        ("composer.json", "php"),
        ("Gemfile", "ruby"),
    ],
)
def test_detect_language_from_marker_file(tmp_path: Path, marker: str, language: str) -> None:
    (tmp_path / marker).write_text("", "utf-8")

    assert detect_language(tmp_path) == language


def test_detect_language_returns_none_without_markers(tmp_path: Path) -> None:
    assert detect_language(tmp_path) is None


def test_add_member_detects_language_of_existing_directory(tmp_path: Path) -> None:
    (tmp_path / "api").mkdir()
    (tmp_path / "api" / "go.mod").write_text("module api\n", "utf-8")
    registry = MemberRegistry(Workspace(name="demo", root_path=tmp_path))

    member = registry.add_member("api", Path("api"))

    assert member.language == "golang"
    assert member.enabled is True
    assert registry.list_members() == [member]


def test_add_member_without_markers_is_unknown(tmp_path: Path) -> None:
    (tmp_path / "misc").mkdir()
    registry = MemberRegistry(Workspace(name="demo", root_path=tmp_path))

    assert registry.add_member("misc", Path("misc")).language == "unknown"


def test_add_member_requires_existing_directory_unless_creating(tmp_path: Path) -> None:
    registry = MemberRegistry(Workspace(name="demo", root_path=tmp_path))

    with pytest.raises(MemberPathNotFoundError):
        registry.add_member("ghost", Path("ghost"))

    assert registry.list_members() == []


def test_add_member_scaffolds_project_with_workspace_language_version(tmp_path: Path) -> None:
    workspace = Workspace(name="demo", root_path=tmp_path)
    workspace.shared_config.default_language_versions["python"] = "3.12"
    registry = MemberRegistry(workspace)

    member = registry.add_member("svc", Path("services/svc"), "python", create_project=True)

    descriptor = tomllib.loads((tmp_path / "services" / "svc" / "cyrus.toml").read_text("utf-8"))
    assert member.language == "python"
    assert descriptor["name"] == "svc"
    assert descriptor["version"] == "3.12"
    assert descriptor["scripts"]["test"] == "pytest"


def test_duplicate_member_leaves_registry_unchanged(tmp_path: Path) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()
    registry = MemberRegistry(Workspace(name="demo", root_path=tmp_path))
    registry.add_member("a", Path("a"))
    before = list(registry.list_members())

    with pytest.raises(DuplicateMemberError):
        registry.add_member("a", Path("b"), create_project=True)

    assert registry.list_members() == before


def test_add_member_rejects_unknown_dependency(tmp_path: Path) -> None:
    (tmp_path / "app").mkdir()
    registry = MemberRegistry(Workspace(name="demo", root_path=tmp_path))

    with pytest.raises(MemberNotFoundError):
        registry.add_member("app", Path("app"), dependencies=["lib"])

    assert registry.list_members() == []


def test_remove_member_strips_references(make_workspace) -> None:
    workspace = make_workspace({"core": [], "web": ["core"], "cli": ["core", "web"]})
    workspace.scripts["lint"] = WorkspaceScript(
        name="lint",
        command="ruff check",
        run_in_members=["core", "web"],
    )
    registry = MemberRegistry(workspace)

    removed = registry.remove_member("core")

    assert removed.name == "core"
    assert [member.name for member in registry.list_members()] == ["web", "cli"]
    assert registry.get_member("web").dependencies == []
    assert registry.get_member("cli").dependencies == ["web"]
    assert workspace.scripts["lint"].run_in_members == ["web"]
    assert (workspace.root_path / "core").is_dir()


def test_remove_member_can_delete_files(make_workspace) -> None:
    workspace = make_workspace({"core": []})
    (workspace.root_path / "core" / "main.rs").write_text("fn main() {}\n", "utf-8")

    MemberRegistry(workspace).remove_member("core", delete_files=True)

    assert not (workspace.root_path / "core").exists()


@pytest.mark.parametrize("path", [".", "apps/..", "../outside"])
def test_add_member_rejects_paths_not_below_root(tmp_path: Path, path: str) -> None:
    root = tmp_path / "ws"
    root.mkdir()
    (tmp_path / "outside").mkdir()
    registry = MemberRegistry(Workspace(name="demo", root_path=root))

    with pytest.raises(InvalidMemberPathError):
        registry.add_member("bad", Path(path), create_project=True)

    assert registry.list_members() == []


def test_delete_files_refuses_member_at_workspace_root(make_workspace) -> None:
    workspace = make_workspace({"lib": []})
    workspace.members.append(Member(name="top", path=Path(".")))
    (workspace.root_path / "cyrus-workspace.json").write_text("{}", "utf-8")
    registry = MemberRegistry(workspace)

    with pytest.raises(InvalidMemberPathError):
        registry.remove_member("top", delete_files=True)

    assert (workspace.root_path / "lib").is_dir()
    assert (workspace.root_path / "cyrus-workspace.json").is_file()
    assert [member.name for member in registry.list_members()] == ["lib", "top"]


def test_remove_unknown_member_raises(make_workspace) -> None:
    with pytest.raises(MemberNotFoundError):
        MemberRegistry(make_workspace({})).remove_member("nope")


def test_set_enabled_toggles_member(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": [], "B": []}))

    registry.set_enabled("A", False)

    assert [member.name for member in registry.workspace.enabled_members()] == ["B"]
    assert registry.set_enabled("A", True).enabled is True


def test_add_dependency_records_edge_once(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": [], "B": []}))

    registry.add_dependency("B", "A")
    registry.add_dependency("B", "A")

    assert registry.get_member("B").dependencies == ["A"]


def test_add_dependency_refuses_cycle_including_disabled_members(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": [], "B": ["A"], "C": ["B"]}, disabled=["B"]))

    with pytest.raises(CircularDependencyError):
        registry.add_dependency("A", "C")

    assert registry.get_member("A").dependencies == []


def test_remove_dependency_requires_existing_edge(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": [], "B": ["A"]}))

    registry.remove_dependency("B", "A")

    assert registry.get_member("B").dependencies == []
    with pytest.raises(WorkspaceError, match="does not depend on"):
        registry.remove_dependency("B", "A")


def test_select_members_keeps_registry_order_and_skips_disabled(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": [], "B": [], "C": []}, disabled=["B"]))

    assert [m.name for m in registry.select_members(None)] == ["A", "C"]
    assert [m.name for m in registry.select_members(["C", "B", "A"])] == ["A", "C"]
    with pytest.raises(MemberNotFoundError):
        registry.select_members(["Z"])


def test_scripts_are_validated_listed_and_removed(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({"A": []}))

    with pytest.raises(MemberNotFoundError):
        registry.add_script(WorkspaceScript(name="bad", command="ls", run_in_members=["B"]))

    registry.add_script(WorkspaceScript(name="zeta", command="ls"))
    registry.add_script(WorkspaceScript(name="alpha", command="pwd", run_in_members=["A"]))

    assert [script.name for script in registry.list_scripts()] == ["alpha", "zeta"]
    assert registry.remove_script("zeta").command == "ls"
    with pytest.raises(ScriptNotFoundError):
        registry.get_script("zeta")


def test_configure_updates_shared_config(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({}))
    registry.workspace.shared_config.shared_environment["OLD"] = "1"

    registry.configure(
        build_parallel=False,
        max_parallel_jobs=2,
        environment={"RUST_LOG": "debug"},
        unset_environment=["OLD", "MISSING"],
        language_versions={"golang": "1.22"},
    )

    config = registry.workspace.shared_config
    assert config.build_parallel is False
    assert config.max_parallel_jobs == 2
    assert config.shared_environment == {"RUST_LOG": "debug"}
    assert config.default_language_versions == {"golang": "1.22"}
    with pytest.raises(ValueError, match="max_parallel_jobs"):
        registry.configure(max_parallel_jobs=0)


def test_add_shared_dependency_deduplicates(make_workspace) -> None:
    registry = MemberRegistry(make_workspace({}))

    registry.add_shared_dependency("python", "requests")
    registry.add_shared_dependency("python", "requests")
    registry.add_shared_dependency("python", "pytest", dev=True)

    sets = registry.workspace.dependencies
    assert sets.shared_dependencies == {"python": ["requests"]}
    assert sets.shared_dev_dependencies == {"python": ["pytest"]}
