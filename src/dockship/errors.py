"""Error taxonomy for the deployment pipeline."""

from __future__ import annotations

from typing import Optional


class DeployError(RuntimeError):
    """Base class for every fatal pipeline condition."""

    default_stage = "pipeline"

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        command: Optional[str] = None,
    ) -> None:
        self.stage = stage or self.default_stage
        self.command = command
        super().__init__(message)


class ValidationError(DeployError):
    """Bad input detected locally; no remote call has been made."""

    default_stage = "validation"


class RepositoryError(DeployError):
    """The working copy could not be cloned or updated."""

    default_stage = "repository"


class ConnectivityError(DeployError):
    """The target host is unreachable over SSH."""

    default_stage = "connectivity"


class ProvisioningError(DeployError):
    """A dependency failed to install, enable or start."""

    default_stage = "provisioning"


class BuildError(DeployError):
    """Image build, file transfer or container/stack start failed."""

    default_stage = "deployment"


class ProxyConfigError(DeployError):
    """The rendered proxy configuration failed validation or activation."""

    default_stage = "proxy"


class ValidationFailure(DeployError):
    """A post-deploy health check failed."""

    default_stage = "validator"

    def __init__(self, check: str, message: str, *, command: Optional[str] = None) -> None:
        self.check = check
        super().__init__(f"{check}: {message}", command=command)
