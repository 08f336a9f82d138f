"""Minimal per-language project skeletons for new workspace members."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

from cyrus.project.descriptor import DEFAULT_PROJECT_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_MANAGERS: dict[str, str] = {
    "javascript": "npm",
    "python": "pip",
    "golang": "go",
    "rust": "cargo",
    "java": "maven",
    "php": "composer",
    "ruby": "bundler",
}

DEFAULT_SCRIPTS: dict[str, dict[str, str]] = {
    "javascript": {
        "start": "npm start",
        "dev": "npm run dev",
        "build": "npm run build",
        "test": "npm test",
    },
    "python": {
        "start": "python main.py",
        "test": "pytest",
        "lint": "flake8",
        "format": "black .",
    },
    "golang": {
        "build": "go build",
        "run": "go run main.go",
        "test": "go test",
        "mod": "go mod tidy",
    },
    "rust": {
        "build": "cargo build",
        "run": "cargo run",
        "test": "cargo test",
        "check": "cargo check",
        "clippy": "cargo clippy",
        "fmt": "cargo fmt",
    },
    "java": {
        "compile": "javac *.java",
        "run": "java Main",
        "test": "mvn test",
        "build": "mvn clean compile",
    },
    "php": {
        "serve": "php -S localhost:8000",
        "test": "phpunit",
    },
    "ruby": {
        "run": "ruby main.rb",
        "test": "rspec",
    },
}


class ProjectScaffolder(Protocol):
    """Creates a project skeleton for a new member."""

    def scaffold(self, path: Path, *, name: str, language: str | None, version: str) -> None:
        """Create `path` and, when a language is known, its project descriptor."""


class TemplateScaffolder:
    """Writes a `cyrus.toml` with the language's default scripts."""

    def __init__(self, filename: str = DEFAULT_PROJECT_FILENAME) -> None:
        self.filename = filename

    def scaffold(self, path: Path, *, name: str, language: str | None, version: str) -> None:
        path.mkdir(parents=True, exist_ok=True)
        if language is None:
            return
        descriptor_path = path / self.filename
        if descriptor_path.exists():
            logger.info("Keeping existing project config %s", descriptor_path)
            return
        descriptor_path.write_text(
            render_project_toml(name=name, language=language, version=version),
            "utf-8",
        )
        logger.info("Scaffolded %s project at %s", language, path)


def render_project_toml(*, name: str, language: str, version: str) -> str:
    lines = [
        f"name = {_toml_string(name)}",
        f"language = {_toml_string(language)}",
        f"version = {_toml_string(version)}",
        f"package_manager = {_toml_string(DEFAULT_PACKAGE_MANAGERS.get(language, ''))}",
        "enable_aliases = true",
        "",
        "[scripts]",
    ]
    for script_name, command in sorted(DEFAULT_SCRIPTS.get(language, {}).items()):
        lines.append(f"{_toml_key(script_name)} = {_toml_string(command)}")
    lines.extend(["", "[environment]", ""])
    return "\n".join(lines)


def _toml_string(value: str) -> str:
    # JSON string escapes are a valid subset of TOML basic strings.
    return json.dumps(value, ensure_ascii=False)


def _toml_key(key: str) -> str:
    if key and all((char.isascii() and char.isalnum()) or char in "-_" for char in key):
        return key
    return _toml_string(key)
