"""Git operations helpers."""

from .manager import GitCloneResult, GitCommandError, GitRepositoryManager

__all__ = ["GitCloneResult", "GitCommandError", "GitRepositoryManager"]
