"""Local working copy management."""

from .manager import WorkspaceContext, WorkspaceManager, resolve_build_mode

__all__ = ["WorkspaceContext", "WorkspaceManager", "resolve_build_mode"]
