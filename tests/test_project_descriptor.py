from __future__ import annotations

import tomllib
from pathlib import Path

import allure
import pytest

from cyrus.project.descriptor import (
    DescriptorProjectResolver,
    ProjectDescriptor,
    load_project_descriptor,
)
from cyrus.project.scaffold import TemplateScaffolder, render_project_toml
from cyrus.workspace.errors import ProjectConfigError

pytestmark = [
    allure.epic("Projects"),
    allure.feature("Project Descriptor"),
]


def test_custom_alias_wins_over_script() -> None:
    descriptor = ProjectDescriptor(
        name="web",
        language="javascript",
        package_manager="npm",
        scripts={"build": "npm run build"},
        custom_aliases={"build": "vite build --mode prod"},
    )

    assert descriptor.resolve_command("build", ["--watch"]) == [
        "vite",
        "build",
        "--mode",
        "prod",
        "--watch",
    ]


def test_script_is_used_when_no_alias_matches() -> None:
    descriptor = ProjectDescriptor(name="svc", language="python", scripts={"test": "pytest -q"})

    assert descriptor.resolve_command("test", ["tests/unit"]) == ["pytest", "-q", "tests/unit"]


def test_package_manager_prefix_for_known_commands() -> None:
    descriptor = ProjectDescriptor(name="web", language="javascript", package_manager="yarn")

    assert descriptor.resolve_command("dev", []) == ["yarn", "dev"]
    assert descriptor.resolve_command("lint", ["--fix"]) == ["lint", "--fix"]


def test_disabled_aliases_pass_command_through() -> None:
    descriptor = ProjectDescriptor(
        name="svc",
        language="python",
        enable_aliases=False,
        scripts={"test": "pytest"},
        custom_aliases={"test": "tox"},
    )

    assert descriptor.resolve_command("test", ["-x"]) == ["test", "-x"]


def test_load_project_descriptor_reads_tables(tmp_path: Path, project_toml) -> None:
    project_toml(
        tmp_path,
        {"scripts": {"test": "go test ./..."}, "environment": {"CGO_ENABLED": "0"}},
        name="api",
        language="golang",
        package_manager="go",
    )

    descriptor = load_project_descriptor(tmp_path / "cyrus.toml")

    assert descriptor.name == "api"
    assert descriptor.language == "golang"
    assert descriptor.version == "latest"
    assert descriptor.scripts == {"test": "go test ./..."}
    assert descriptor.environment == {"CGO_ENABLED": "0"}


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("name = ", "Failed to parse"),
        ('language = "rust"\n', "name must be a non-empty string"),
        ('name = "x"\n', "language must be a non-empty string"),
        ('name = "x"\nlanguage = "rust"\nenable_aliases = "yes"\n', "enable_aliases"),
        ('name = "x"\nlanguage = "rust"\nscripts = "build"\n', r"\[scripts\] must be a table"),
        ('name = "x"\nlanguage = "rust"\n[environment]\nDEBUG = 1\n', "environment.DEBUG"),
    ],
)
def test_load_project_descriptor_rejects_invalid_content(
    tmp_path: Path,
    content: str,
    message: str,
) -> None:
    path = tmp_path / "cyrus.toml"
    path.write_text(content, "utf-8")

    with pytest.raises(ProjectConfigError, match=message):
        load_project_descriptor(path)


def test_resolver_passes_through_without_project_file(tmp_path: Path) -> None:
    resolver = DescriptorProjectResolver()

    resolved = resolver.resolve(tmp_path, "make", ["all"])

    assert resolver.has_project(tmp_path) is False
    assert resolved.argv == ["make", "all"]
    assert resolved.environment == {}
    assert resolved.via_project is False


def test_resolver_uses_project_file(tmp_path: Path, project_toml) -> None:
    project_toml(
        tmp_path,
        {"environment": {"RUST_BACKTRACE": "1"}},
        name="core",
        language="rust",
    )

    resolved = DescriptorProjectResolver().resolve(tmp_path, "cargo", ["build"])

    assert resolved.argv == ["cargo", "build"]
    assert resolved.environment == {"RUST_BACKTRACE": "1"}
    assert resolved.via_project is True


def test_rendered_project_toml_loads_back(tmp_path: Path) -> None:
    text = render_project_toml(name='quote"name', language="rust", version="1.80")
    path = tmp_path / "cyrus.toml"
    path.write_text(text, "utf-8")

    descriptor = load_project_descriptor(path)

    assert descriptor.name == 'quote"name'
    assert descriptor.package_manager == "cargo"
    assert descriptor.scripts["clippy"] == "cargo clippy"


def test_scaffolder_keeps_existing_project_file(tmp_path: Path) -> None:
    (tmp_path / "cyrus.toml").write_text('name = "mine"\nlanguage = "ruby"\n', "utf-8")

    TemplateScaffolder().scaffold(tmp_path, name="other", language="python", version="3.12")

    assert tomllib.loads((tmp_path / "cyrus.toml").read_text("utf-8"))["name"] == "mine"


def test_scaffolder_without_language_only_creates_directory(tmp_path: Path) -> None:
    target = tmp_path / "nested" / "pkg"

    TemplateScaffolder().scaffold(target, name="pkg", language=None, version="latest")

    assert target.is_dir()
    assert list(target.iterdir()) == []
