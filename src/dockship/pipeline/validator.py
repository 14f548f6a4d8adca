"""Post-deploy checks that the application is reachable."""

from __future__ import annotations

import time
from typing import Callable, Optional

import requests

from ..config import ValidationConfig
from ..errors import ValidationFailure
from ..models import BuildMode, DeployContext, ExecPolicy, compose_project_name
from .deployment import compose_command
from .executor import RemoteExecutor
from .stage import PipelineStage, name_filter, q

HttpGet = Callable[..., requests.Response]


class Validator(PipelineStage):
    """Checks, in order, stopping at the first failure:

    1. the docker service is active,
    2. a container for the project is running,
    3. the application answers on its port from the host itself,
    4. the public address answers on the proxy port from this machine.

    The two reachability checks are retried with exponential backoff, since
    an application that is still starting is not a failed deploy. The
    service and container checks are single-shot.
    """

    name = "validator"

    def __init__(
        self,
        executor: RemoteExecutor,
        config: ValidationConfig,
        *,
        http_get: Optional[HttpGet] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(executor)
        self.config = config
        self.http_get = http_get or requests.get
        self.sleep = sleep

    def apply(self, ctx: DeployContext) -> str:
        self.audit.info("Validating full deployment on %s...", ctx.target.host)
        self._check_docker_service()
        self._check_container(ctx)
        self._check_internal(ctx)
        self._check_public(ctx)
        self.audit.success("Deployment validated successfully.")
        return "all checks passed"

    def _check_docker_service(self) -> None:
        command = "sudo systemctl is-active --quiet docker"
        if not self.executor.execute(command, ExecPolicy.NON_FATAL).ok:
            raise ValidationFailure("docker-service", "Docker service is not running.", command=command)
        self.audit.success("Docker service is running.")

    def _check_container(self, ctx: DeployContext) -> None:
        if ctx.application is not None and ctx.application.build_mode is BuildMode.COMPOSE:
            selector = f"label=com.docker.compose.project={compose_project_name(ctx.project_name)}"
        else:
            selector = name_filter(ctx.project_name)
        command = f"docker ps -q --filter {selector} --filter status=running"
        result = self.executor.execute(command, ExecPolicy.NON_FATAL)
        if not (result.ok and result.stdout.strip()):
            self._record_container_output(ctx)
            raise ValidationFailure(
                "container-running",
                f"No running container found for '{ctx.project_name}'.",
                command=command,
            )
        self.audit.success("Target container '%s' is running.", ctx.project_name)

    def _check_internal(self, ctx: DeployContext) -> None:
        port = ctx.application.port
        command = f"curl -s -o /dev/null --max-time 10 http://localhost:{port}"
        ok = self._with_backoff(lambda: self.executor.execute(command, ExecPolicy.NON_FATAL).ok)
        if not ok:
            self._record_container_output(ctx)
            raise ValidationFailure(
                "internal-endpoint",
                f"Application not accessible on port {port} from the remote host.",
                command=command,
            )
        self.audit.success("Application accessible on port %s.", port)

    def _check_public(self, ctx: DeployContext) -> None:
        rule = ctx.proxy_rule
        url = f"http://{rule.server_name}:{rule.listen_port}/"
        last_error = []

        def attempt() -> bool:
            try:
                response = self.http_get(url, timeout=self.config.http_timeout)
            except requests.RequestException as exc:
                last_error.append(str(exc))
                return False
            if response.status_code >= 500:
                last_error.append(f"HTTP {response.status_code}")
                return False
            return True

        if not self._with_backoff(attempt):
            detail = last_error[-1] if last_error else "no response"
            raise ValidationFailure(
                "public-endpoint",
                f"{url} did not answer through the proxy ({detail}).",
                command=f"GET {url}",
            )
        self.audit.success("Public endpoint %s answered.", url)

    def _record_container_output(self, ctx: DeployContext) -> None:
        if ctx.application is not None and ctx.application.build_mode is BuildMode.COMPOSE:
            command = compose_command(ctx, "logs --tail 100")
        else:
            command = f"docker logs --tail 100 {q(ctx.project_name)}"
        result = self.executor.execute(command, ExecPolicy.NON_FATAL)
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        self.audit.error("Container output for '%s':\n%s", ctx.project_name, output or "(none)")

    def _with_backoff(self, check: Callable[[], bool]) -> bool:
        attempts = max(1, self.config.reachability_attempts)
        delay = self.config.backoff_seconds
        for attempt in range(1, attempts + 1):
            if check():
                return True
            if attempt < attempts:
                self.audit.info("Check failed (attempt %d/%d), retrying in %.1fs...", attempt, attempts, delay)
                self.sleep(delay)
                delay *= 2
        return False
