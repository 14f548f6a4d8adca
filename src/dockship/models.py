"""Data models shared by the pipeline stages."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from .errors import DeployError, ValidationError

PROJECT_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.-]*$")


class BuildMode(Enum):
    """How the application is built and started on the host."""
    SINGLE = "single-container"
    COMPOSE = "multi-container-compose"


class ExecPolicy(Enum):
    """What a non-zero remote exit status means to the caller."""
    FAIL_FAST = "fail-fast"
    NON_FATAL = "non-fatal"


class FailurePolicy(Enum):
    """What a stage error means to the pipeline."""
    FAIL_FAST = "fail-fast"
    TOLERANT = "tolerant"


class Outcome(Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ContainerState(Enum):
    """Lifecycle of the application container for one project name."""
    ABSENT = "absent"
    STALE = "stale"
    RUNNING = "running"


class StageStatus(Enum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    TOLERATED = "tolerated"
    FAILED = "failed"


def derive_project_name(repo_url: str) -> str:
    """Return the identifier used as container, image, directory and site name.

    The last path segment of the URL with any ``.git`` suffix removed,
    lower-cased so it is also a valid image tag.
    """
    tail = repo_url.strip().rstrip("/")
    tail = re.split(r"[/:]", tail)[-1]
    if tail.endswith(".git"):
        tail = tail[:-4]
    name = tail.lower()
    if not PROJECT_NAME_PATTERN.match(name):
        raise ValidationError(
            f"Cannot derive a valid project name from repository URL {repo_url!r} (got {name!r})"
        )
    return name


def compose_project_name(project_name: str) -> str:
    # docker-compose drops characters outside [-_a-z0-9] from -p values
    return re.sub(r"[^-_a-z0-9]", "", project_name.lower())


@dataclass(frozen=True)
class DeploymentTarget:
    """Where the application is deployed and how to log in."""

    host: str
    username: str
    key_path: str
    port: int = 22
    timeout: int = 20

    @property
    def display(self) -> str:
        return f"{self.username}@{self.host}"

    @property
    def home_dir(self) -> str:
        if self.username == "root":
            return "/root"
        return f"/home/{self.username}"

    def validate(self) -> None:
        """Ensure the private key resolves to an existing, readable file."""
        key = Path(os.path.expanduser(self.key_path))
        if not key.is_file():
            raise ValidationError(f"SSH key not found at {self.key_path}")
        if not os.access(key, os.R_OK):
            raise ValidationError(f"SSH key at {self.key_path} is not readable")


@dataclass(frozen=True)
class RepositorySpec:
    url: str
    token: Optional[str] = field(default=None, repr=False)
    branch: str = "main"

    @property
    def project_name(self) -> str:
        return derive_project_name(self.url)


@dataclass(frozen=True)
class ApplicationSpec:
    port: int
    build_mode: BuildMode = BuildMode.SINGLE

    def validate(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ValidationError(
                f"Invalid port {self.port}: must be between 1 and 65535"
            )


@dataclass
class RemoteCommandResult:
    command: str
    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def outcome(self) -> Outcome:
        return Outcome.SUCCESS if self.exit_status == 0 else Outcome.FAILURE

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


@dataclass(frozen=True)
class ProxyRule:
    """One public name routed to one local upstream port."""

    server_name: str
    upstream_port: int
    listen_port: int = 80


@dataclass(frozen=True)
class DeployContext:
    """Immutable inputs threaded through every stage call."""

    target: DeploymentTarget
    repository: RepositorySpec
    remote_dir: str
    application: Optional[ApplicationSpec] = None
    working_copy: Optional[Path] = None
    proxy_rule: Optional[ProxyRule] = None

    @property
    def project_name(self) -> str:
        return self.repository.project_name


@dataclass
class StageRecord:
    name: str
    status: StageStatus
    detail: str = ""


@dataclass
class PipelineReport:
    """What happened during one pipeline run."""

    mode: str
    project_name: str
    records: List[StageRecord] = field(default_factory=list)
    error: Optional[DeployError] = None
    log_file: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed_stage(self) -> Optional[str]:
        return self.error.stage if self.error else None

    def record(self, name: str, status: StageStatus, detail: str = "") -> None:
        self.records.append(StageRecord(name=name, status=status, detail=detail))

    def status_of(self, name: str) -> Optional[StageStatus]:
        for record in reversed(self.records):
            if record.name == name:
                return record.status
        return None
