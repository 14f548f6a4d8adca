"""Pipeline orchestration: sequence the stages under one fail-fast policy."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..config import AppConfig
from ..errors import DeployError, RepositoryError
from ..gitops import GitCloneResult, GitCommandError, GitRepositoryManager
from ..models import (
    ApplicationSpec,
    DeployContext,
    DeploymentTarget,
    FailurePolicy,
    PipelineReport,
    ProxyRule,
    RepositorySpec,
    StageStatus,
)
from ..ssh import SSHTransport
from ..utils.logging import AuditLog, get_logger
from ..workspace import WorkspaceManager, resolve_build_mode
from .cleanup import CleanupStage
from .deployment import DeploymentStage
from .executor import RemoteExecutor, RemoteTransport
from .provisioning import ProvisioningStage
from .proxy import ProxyConfigurator
from .stage import PipelineStage
from .validator import HttpGet, Validator

logger = get_logger(__name__)


class PipelineOrchestrator:
    """
    Runs the deploy pipeline (repository → connectivity → provisioning →
    deployment → proxy → validation) or the cleanup pipeline against one host.

    Collaborators are injectable so tests can drive the whole pipeline
    against a fake host.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        transport: Optional[RemoteTransport] = None,
        git_manager: Optional[GitRepositoryManager] = None,
        workspace: Optional[WorkspaceManager] = None,
        log_dir: Optional[str] = None,
        http_get: Optional[HttpGet] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.config = config
        self.transport = transport or SSHTransport(
            command_timeout=config.deployment.command_timeout,
        )
        self.git_manager = git_manager or GitRepositoryManager()
        self.workspace = workspace or WorkspaceManager(Path(config.deployment.workspace_root))
        self.log_dir = Path(log_dir or config.deployment.log_dir)
        self.http_get = http_get
        self.sleep = sleep

    def _remote_dir(self, target: DeploymentTarget, repository: RepositorySpec) -> str:
        return posixpath.join(target.home_dir, repository.project_name)

    def deploy(
        self,
        target: DeploymentTarget,
        repository: RepositorySpec,
        port: int,
        *,
        domain: Optional[str] = None,
    ) -> PipelineReport:
        report = PipelineReport(mode="deploy", project_name=repository.project_name)
        audit = AuditLog(self.log_dir)
        report.log_file = audit.path
        audit.info("Deployment started for %s on %s.", repository.project_name, target.display)
        try:
            ApplicationSpec(port=port).validate()
            target.validate()

            workspace_ctx = self.workspace.prepare(repository.project_name)
            checkout = self._checkout(repository, workspace_ctx.source_dir, audit)
            working_copy = checkout.path
            report.record("repository", StageStatus.APPLIED, repository.branch)

            audit.info("Verifying Dockerfile or docker-compose.yml in %s...", working_copy)
            mode = resolve_build_mode(working_copy)
            audit.success("Build mode: %s.", mode.value)

            ctx = DeployContext(
                target=target,
                repository=repository,
                remote_dir=self._remote_dir(target, repository),
                application=ApplicationSpec(port=port, build_mode=mode),
                working_copy=working_copy,
                proxy_rule=ProxyRule(
                    server_name=domain or target.host,
                    upstream_port=port,
                    listen_port=self.config.proxy.listen_port,
                ),
            )

            executor = RemoteExecutor(self.transport, target, audit)
            executor.ensure_reachable()
            report.record("connectivity", StageStatus.APPLIED, target.display)

            stages = [
                ProvisioningStage(executor, self.config.provisioning),
                DeploymentStage(executor),
                ProxyConfigurator(executor, self.config.proxy),
                Validator(executor, self.config.validation, **self._validator_kwargs()),
            ]
            self._run_stages(stages, ctx, report, audit)
            self.workspace.update_metadata(
                workspace_ctx,
                repo_url=repository.url,
                branch=repository.branch,
                commit_sha=checkout.commit_sha,
                build_mode=mode.value,
                host=target.host,
                port=port,
            )
            audit.success("Deployment finished successfully!")
        except DeployError as exc:
            self._fail(report, exc, audit)
        finally:
            self._close(audit)
        return report

    def cleanup(
        self,
        target: DeploymentTarget,
        repository: RepositorySpec,
        *,
        purge_local: bool = False,
    ) -> PipelineReport:
        report = PipelineReport(mode="cleanup", project_name=repository.project_name)
        audit = AuditLog(self.log_dir)
        report.log_file = audit.path
        audit.info("Cleanup started for %s on %s.", repository.project_name, target.display)
        try:
            target.validate()
            ctx = DeployContext(
                target=target,
                repository=repository,
                remote_dir=self._remote_dir(target, repository),
            )
            executor = RemoteExecutor(self.transport, target, audit)
            executor.ensure_reachable()
            report.record("connectivity", StageStatus.APPLIED, target.display)
            self._run_stages([CleanupStage(executor, self.config.proxy)], ctx, report, audit)
            if purge_local:
                self.workspace.cleanup(self.workspace.prepare(repository.project_name))
                audit.info("Removed local working copy for %s.", repository.project_name)
            audit.success("Deployment cleanup process finished.")
        except DeployError as exc:
            self._fail(report, exc, audit)
        finally:
            self._close(audit)
        return report

    def _checkout(self, repository: RepositorySpec, source_dir: Path, audit: AuditLog) -> GitCloneResult:
        audit.info("Fetching %s (branch %s)...", repository.url, repository.branch)
        try:
            result = self.git_manager.clone_or_update(
                repository.url,
                source_dir,
                branch=repository.branch,
                token=repository.token,
            )
        except GitCommandError as exc:
            raise RepositoryError(str(exc), command=" ".join(exc.command)) from exc
        except OSError as exc:
            raise RepositoryError(
                f"Cannot prepare working copy at {source_dir}: {exc}",
                command=f"clone-or-update {repository.url}",
            ) from exc
        verb = "Cloned" if result.cloned else "Updated"
        audit.success("%s working copy at %s (%s).", verb, result.path, result.commit_sha[:12])
        return result

    def _run_stages(
        self,
        stages: Iterable[PipelineStage],
        ctx: DeployContext,
        report: PipelineReport,
        audit: AuditLog,
    ) -> None:
        for stage in stages:
            try:
                if stage.probe(ctx):
                    audit.info("Stage '%s' already converged, skipping.", stage.name)
                    stage.settle(ctx)
                    report.record(stage.name, StageStatus.SKIPPED)
                    continue
                detail = stage.apply(ctx)
            except DeployError as exc:
                if stage.policy is FailurePolicy.TOLERANT:
                    audit.error("Stage '%s' reported a problem (tolerated): %s", stage.name, exc)
                    report.record(stage.name, StageStatus.TOLERATED, str(exc))
                    continue
                report.record(stage.name, StageStatus.FAILED, str(exc))
                raise
            report.record(stage.name, StageStatus.APPLIED, detail or "")

    def _validator_kwargs(self) -> dict:
        kwargs = {}
        if self.http_get is not None:
            kwargs["http_get"] = self.http_get
        if self.sleep is not None:
            kwargs["sleep"] = self.sleep
        return kwargs

    @staticmethod
    def _fail(report: PipelineReport, exc: DeployError, audit: AuditLog) -> None:
        report.error = exc
        if exc.command:
            audit.error("Stage '%s' failed at command `%s`: %s", exc.stage, exc.command, exc)
        else:
            audit.error("Stage '%s' failed: %s", exc.stage, exc)

    def _close(self, audit: AuditLog) -> None:
        close = getattr(self.transport, "close", None)
        if callable(close):
            close()
        audit.close()
