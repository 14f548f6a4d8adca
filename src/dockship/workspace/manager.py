"""Workspace management for local working copies."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
import shutil
from typing import Optional

from ..errors import ValidationError
from ..models import BuildMode
from ..paths import get_workspace_dir

COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")
DOCKERFILE = "Dockerfile"


@dataclass
class WorkspaceContext:
    """The local checkout for one project."""

    project_name: str
    root: Path
    source_dir: Path
    metadata_file: Path


class WorkspaceManager:
    """Keeps one stable checkout directory per project.

    The directory is reused across runs so the git client can update it in
    place instead of cloning from scratch.
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root else get_workspace_dir()
        self.root.mkdir(parents=True, exist_ok=True)

    def prepare(self, project_name: str) -> WorkspaceContext:
        project_dir = self.root / project_name
        project_dir.mkdir(parents=True, exist_ok=True)
        return WorkspaceContext(
            project_name=project_name,
            root=self.root,
            source_dir=project_dir / "source",
            metadata_file=project_dir / "metadata.json",
        )

    def cleanup(self, context: WorkspaceContext) -> None:
        shutil.rmtree(context.source_dir.parent, ignore_errors=True)

    def update_metadata(self, context: WorkspaceContext, **fields: object) -> None:
        payload = self.read_metadata(context)
        payload.update(fields)
        payload["updated_at"] = int(time.time())
        context.metadata_file.write_text(
            json.dumps(payload, indent=2),
            encoding="utf-8",
        )

    def read_metadata(self, context: WorkspaceContext) -> dict:
        if context.metadata_file.exists():
            return json.loads(context.metadata_file.read_text(encoding="utf-8"))
        return {}


def resolve_build_mode(source_dir: Path) -> BuildMode:
    """Pick the build mode from the files present in the working copy.

    A compose descriptor wins over a Dockerfile. Having neither is a local
    validation failure.
    """
    source_dir = Path(source_dir)
    if any((source_dir / name).is_file() for name in COMPOSE_FILES):
        return BuildMode.COMPOSE
    if (source_dir / DOCKERFILE).is_file():
        return BuildMode.SINGLE
    raise ValidationError(
        f"Neither a Dockerfile nor a docker-compose file was found in {source_dir}"
    )
