"""Bring the remote host to a state where docker, docker-compose and nginx run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ..config import ProvisioningConfig
from ..errors import ProvisioningError
from ..models import DeployContext, ExecPolicy
from .executor import RemoteExecutor
from .stage import PipelineStage, q

APT_INSTALL = "sudo DEBIAN_FRONTEND=noninteractive apt-get install -y"


@dataclass(frozen=True)
class Dependency:
    """A piece of host software, how to detect it and how to install it."""

    name: str
    probe: str
    install: Tuple[str, ...]
    uses_apt: bool = True


def default_dependencies(compose_version: str) -> List[Dependency]:
    compose_url = (
        f"https://github.com/docker/compose/releases/download/{compose_version}/"
        "docker-compose-$(uname -s)-$(uname -m)"
    )
    return [
        Dependency(
            name="docker",
            probe="command -v docker >/dev/null 2>&1",
            install=(
                f"{APT_INSTALL} apt-transport-https ca-certificates curl gnupg software-properties-common lsb-release",
                "curl -fsSL https://download.docker.com/linux/ubuntu/gpg"
                " | sudo gpg --batch --yes --dearmor -o /usr/share/keyrings/docker-archive-keyring.gpg",
                'echo "deb [arch=$(dpkg --print-architecture) signed-by=/usr/share/keyrings/docker-archive-keyring.gpg]'
                ' https://download.docker.com/linux/ubuntu $(lsb_release -cs) stable"'
                " | sudo tee /etc/apt/sources.list.d/docker.list > /dev/null",
                "sudo apt-get update",
                f"{APT_INSTALL} docker-ce docker-ce-cli containerd.io",
            ),
        ),
        Dependency(
            name="docker-compose",
            probe="command -v docker-compose >/dev/null 2>&1",
            install=(
                f'sudo curl -fsSL "{compose_url}" -o /usr/local/bin/docker-compose',
                "sudo chmod +x /usr/local/bin/docker-compose",
            ),
            uses_apt=False,
        ),
        Dependency(
            name="nginx",
            probe="command -v nginx >/dev/null 2>&1",
            install=(f"{APT_INSTALL} nginx",),
        ),
    ]


class ProvisioningStage(PipelineStage):
    """Install what is missing, then enable and start the services.

    Each dependency is probed first and only installed when the probe fails,
    so a second run only repeats the service-manager calls, which are
    idempotent themselves.
    """

    name = "provisioning"

    def __init__(
        self,
        executor: RemoteExecutor,
        config: ProvisioningConfig,
        dependencies: Sequence[Dependency] | None = None,
    ) -> None:
        super().__init__(executor)
        self.config = config
        self.dependencies = list(dependencies or default_dependencies(config.compose_version))

    def _run(self, command: str) -> None:
        self.executor.execute(command, ExecPolicy.FAIL_FAST, error=ProvisioningError)

    def apply(self, ctx: DeployContext) -> str:
        self.audit.info("Preparing remote environment on %s...", ctx.target.host)

        missing = []
        for dependency in self.dependencies:
            self.audit.info("Checking for %s installation...", dependency.name)
            if self.executor.probe(dependency.probe):
                self.audit.info("%s already installed.", dependency.name)
            else:
                self.audit.info("%s not found.", dependency.name)
                missing.append(dependency)

        if any(dep.uses_apt for dep in missing) or self.config.upgrade_packages:
            self._run("sudo apt-get update")
            if self.config.upgrade_packages:
                self._run("sudo DEBIAN_FRONTEND=noninteractive apt-get upgrade -y")

        for dependency in missing:
            self.audit.info("Installing %s...", dependency.name)
            for command in dependency.install:
                self._run(command)
            self.audit.success("%s installed.", dependency.name)

        user = ctx.target.username
        self.audit.info("Adding user '%s' to docker group if not already a member...", user)
        self._run(f"sudo usermod -aG docker {q(user)}")

        self.audit.info("Enabling and starting Docker and Nginx services...")
        for service in ("docker", "nginx"):
            self._run(f"sudo systemctl enable {service} && sudo systemctl start {service}")

        # docker group membership only applies to new logins
        self.executor.reconnect()

        self.audit.info("Confirming installation versions...")
        for command in ("docker --version", "docker-compose --version", "nginx -v"):
            self._run(command)

        self.audit.success("Remote environment prepared successfully.")
        if missing:
            return "installed " + ", ".join(dep.name for dep in missing)
        return "all dependencies present"
