"""Cyrus language-environment manager: multi-project workspaces."""

__version__ = "0.3.0"
