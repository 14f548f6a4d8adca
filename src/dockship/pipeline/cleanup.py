"""Reverse what the deployment and proxy stages left on the host."""

from __future__ import annotations

from ..config import ProxyConfig
from ..models import DeployContext, ExecPolicy, FailurePolicy
from .deployment import compose_command, remote_compose_probe
from .executor import RemoteExecutor
from .proxy import SitePaths
from .stage import PipelineStage, q


class CleanupStage(PipelineStage):
    """Remove the container or stack, the nginx site and the project directory.

    Every action is tolerant: something that is already gone is not an
    error, so cleaning a host that never had a deployment succeeds.
    """

    name = "cleanup"
    policy = FailurePolicy.TOLERANT

    def __init__(self, executor: RemoteExecutor, config: ProxyConfig) -> None:
        super().__init__(executor)
        self.config = config

    def _tolerant(self, command: str) -> bool:
        return self.executor.execute(command, ExecPolicy.NON_FATAL).ok

    def apply(self, ctx: DeployContext) -> str:
        name = q(ctx.project_name)
        paths = SitePaths.for_project(self.config, ctx.project_name)
        self.audit.info("Starting cleanup of deployed resources on %s...", ctx.target.host)

        self.audit.info("Stopping and removing Docker containers...")
        if self.executor.probe(remote_compose_probe(ctx.remote_dir)):
            self._tolerant(compose_command(ctx, "down --rmi all --volumes --remove-orphans"))
        self._tolerant(f"docker stop {name}")
        self._tolerant(f"docker rm {name}")
        self._tolerant(f"docker rmi {name}")
        self.audit.success("Docker containers and images removed.")

        self.audit.info("Removing Nginx configuration...")
        for path in (paths.enabled, paths.available, paths.staged):
            self._tolerant(f"sudo rm -f {q(path)}")
        self._tolerant(f"sudo rm -rf {q(paths.scratch)}")
        self._tolerant("sudo systemctl reload nginx")
        self.audit.success("Nginx configuration removed.")

        self.audit.info("Removing project directory on remote server...")
        self._tolerant(f"rm -rf {q(ctx.remote_dir)}")
        self.audit.success("Project directory removed from remote server.")
        return f"removed resources for {ctx.project_name}"
