"""Unified path constants for dockship.

Local state lives under the current working directory:
- .dockship/workspace/<project>/   # Local clones of deployed repositories
- deploy_logs/                     # Audit logs, one file per run
"""

from pathlib import Path

BASE_DIR = Path(".dockship")

WORKSPACE_DIR = BASE_DIR / "workspace"
LOGS_DIR = Path("deploy_logs")


def get_workspace_dir() -> Path:
    """Return the workspace directory, creating it if needed."""
    WORKSPACE_DIR.mkdir(parents=True, exist_ok=True)
    return WORKSPACE_DIR

