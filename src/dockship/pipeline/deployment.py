"""Drive the application container(s) from whatever is there to running."""

from __future__ import annotations

import posixpath
from typing import List

from ..errors import BuildError, ValidationError
from ..models import BuildMode, ContainerState, DeployContext, ExecPolicy, compose_project_name
from ..workspace import resolve_build_mode
from ..workspace.manager import COMPOSE_FILES
from .stage import PipelineStage, name_filter, q


def compose_command(ctx: DeployContext, action: str) -> str:
    return (
        f"cd {q(ctx.remote_dir)} && "
        f"docker-compose -p {q(compose_project_name(ctx.project_name))} {action}"
    )


def remote_compose_probe(remote_dir: str) -> str:
    checks = " || ".join(f"test -f {q(posixpath.join(remote_dir, name))}" for name in COMPOSE_FILES)
    return f"( {checks} )"


class DeploymentStage(PipelineStage):
    """Stale -> Absent -> Running for the project's container or stack.

    Tearing down the previous container is tolerant since it may already be
    gone; building and starting the new one is fail-fast. There is no
    rollback: a failed run is recovered by running the pipeline again.
    """

    name = "deployment"

    def __init__(self, executor) -> None:
        super().__init__(executor)
        self.transitions: List[ContainerState] = []

    def _enter(self, state: ContainerState) -> None:
        self.transitions.append(state)
        self.audit.info("Container state for this project: %s", state.value)

    def apply(self, ctx: DeployContext) -> str:
        if ctx.application is None or ctx.working_copy is None:
            raise ValidationError("Deployment requires an application spec and a working copy")
        mode = ctx.application.build_mode
        if resolve_build_mode(ctx.working_copy) is not mode:
            raise ValidationError(
                f"Working copy {ctx.working_copy} no longer matches build mode {mode.value}"
            )
        self.transitions = []
        self.audit.info("Deploying %s to %s (%s)...", ctx.project_name, ctx.target.host, mode.value)

        if mode is BuildMode.COMPOSE:
            state = self._detect_compose(ctx)
        else:
            state = self._detect_container(ctx)
        self._enter(state)
        if state is ContainerState.STALE:
            self._teardown(ctx, mode)
            self._enter(ContainerState.ABSENT)

        self._transfer(ctx)

        if mode is BuildMode.COMPOSE:
            self._start_stack(ctx)
        else:
            self._start_container(ctx)
        self._enter(ContainerState.RUNNING)
        self.audit.success("Docker containers built and running.")
        return " -> ".join(state.value for state in self.transitions)

    def _detect_container(self, ctx: DeployContext) -> ContainerState:
        result = self.executor.execute(
            f"docker ps -aq --filter {name_filter(ctx.project_name)}", ExecPolicy.NON_FATAL
        )
        if result.ok and result.stdout.strip():
            return ContainerState.STALE
        return ContainerState.ABSENT

    def _detect_compose(self, ctx: DeployContext) -> ContainerState:
        if self.executor.probe(remote_compose_probe(ctx.remote_dir)):
            return ContainerState.STALE
        return ContainerState.ABSENT

    def _teardown(self, ctx: DeployContext, mode: BuildMode) -> None:
        self.audit.info("Stopping and removing old containers (if any)...")
        if mode is BuildMode.COMPOSE:
            self.executor.execute(compose_command(ctx, "down --remove-orphans"), ExecPolicy.NON_FATAL)
            return
        name = q(ctx.project_name)
        self.executor.execute(f"docker stop {name}", ExecPolicy.NON_FATAL)
        self.executor.execute(f"docker rm {name}", ExecPolicy.NON_FATAL)

    def _transfer(self, ctx: DeployContext) -> None:
        self.audit.info("Transferring project files to remote server...")
        self.executor.execute(f"rm -rf {q(ctx.remote_dir)}", ExecPolicy.NON_FATAL)
        self.executor.copy_directory(ctx.working_copy, ctx.remote_dir, error=BuildError)
        self.audit.success("Project files transferred.")

    def _start_container(self, ctx: DeployContext) -> None:
        name = q(ctx.project_name)
        port = ctx.application.port
        self.audit.info("Building and running container with Dockerfile...")
        self.executor.execute(f"docker build -t {name} {q(ctx.remote_dir)}", error=BuildError)
        self.executor.execute(
            f"docker run -d --restart unless-stopped -p {port}:{port} --name {name} {name}",
            error=BuildError,
        )

    def _start_stack(self, ctx: DeployContext) -> None:
        self.audit.info("Building and running containers with docker-compose...")
        self.executor.execute(compose_command(ctx, "up -d --build"), error=BuildError)
