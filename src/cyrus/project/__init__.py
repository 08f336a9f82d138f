"""Adapters for a member's own project config and skeleton creation."""

from cyrus.project.descriptor import (
    DEFAULT_PROJECT_FILENAME,
    DescriptorProjectResolver,
    ProjectDescriptor,
    ProjectResolver,
    ResolvedCommand,
    load_project_descriptor,
)
from cyrus.project.scaffold import ProjectScaffolder, TemplateScaffolder, render_project_toml

__all__ = [
    "DEFAULT_PROJECT_FILENAME",
    "DescriptorProjectResolver",
    "ProjectDescriptor",
    "ProjectResolver",
    "ProjectScaffolder",
    "ResolvedCommand",
    "TemplateScaffolder",
    "load_project_descriptor",
    "render_project_toml",
]
