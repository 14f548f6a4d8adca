"""Base class for pipeline stages."""

from __future__ import annotations

import shlex

from ..models import DeployContext, FailurePolicy
from .executor import RemoteExecutor


class PipelineStage:
    """One step of a pipeline.

    `probe` reports whether the host already matches what `apply` would
    produce, in which case the orchestrator skips the stage. `policy` decides
    whether an error from `apply` aborts the pipeline or is only logged.
    """

    name = "stage"
    policy = FailurePolicy.FAIL_FAST

    def __init__(self, executor: RemoteExecutor) -> None:
        self.executor = executor

    @property
    def audit(self):
        return self.executor.audit

    def probe(self, ctx: DeployContext) -> bool:
        return False

    def settle(self, ctx: DeployContext) -> None:
        """Runs instead of `apply` when `probe` reports the host converged."""

    def apply(self, ctx: DeployContext) -> str:
        raise NotImplementedError


def q(value: object) -> str:
    return shlex.quote(str(value))


def name_filter(container_name: str) -> str:
    """Quoted ``docker ps`` filter matching exactly `container_name`."""
    # docker treats the value as a regex; '.' is the only metacharacter a project name can hold
    return q("name=^/" + container_name.replace(".", r"\.") + "$")
