"""Remote command execution with an explicit failure policy."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Type

from ..errors import BuildError, ConnectivityError, DeployError
from ..models import DeploymentTarget, ExecPolicy, RemoteCommandResult
from ..utils.logging import AuditLog, get_logger

logger = get_logger(__name__)


class RemoteTransport(Protocol):
    def probe_reachable(self, target: DeploymentTarget) -> bool: ...

    def run(self, target: DeploymentTarget, command: str) -> RemoteCommandResult: ...

    def copy_directory(self, target: DeploymentTarget, local_path: Path, remote_path: str) -> bool: ...

    def reset(self, target: DeploymentTarget) -> None: ...


class RemoteExecutor:
    """Runs commands on one target and records every call to the audit log.

    A reachability probe has to pass before the first command; until then
    every call raises ConnectivityError.
    """

    def __init__(self, transport: RemoteTransport, target: DeploymentTarget, audit: AuditLog) -> None:
        self.transport = transport
        self.target = target
        self.audit = audit
        self._reachable = False

    def ensure_reachable(self) -> None:
        self.target.validate()
        self.audit.info("Performing SSH connectivity check against %s...", self.target.display)
        if not self.transport.probe_reachable(self.target):
            self._reachable = False
            raise ConnectivityError(
                f"SSH connectivity check failed for {self.target.display}",
                command="ssh probe",
            )
        self._reachable = True
        self.audit.success("SSH connectivity check passed.")

    def reconnect(self) -> None:
        """Open a fresh session, e.g. after the user's groups changed."""
        self.transport.reset(self.target)
        self._reachable = False
        self.ensure_reachable()

    def execute(
        self,
        command: str,
        policy: ExecPolicy = ExecPolicy.FAIL_FAST,
        *,
        error: Type[DeployError] = BuildError,
    ) -> RemoteCommandResult:
        if not self._reachable:
            raise ConnectivityError(
                f"No verified connection to {self.target.display}", command=command
            )
        logger.debug("Executing remote command: %s", command)
        result = self.transport.run(self.target, command)
        self.audit.command(command, result.outcome.value, result.exit_status)
        if not result.ok and policy is ExecPolicy.FAIL_FAST:
            detail = (result.stderr or result.stdout or "").strip()
            message = f"Remote command failed with exit status {result.exit_status}: {command}"
            if detail:
                message = f"{message}\n{detail}"
            raise error(message, command=command)
        return result

    def probe(self, command: str) -> bool:
        """Run an idempotency probe; failure only means 'not in that state'."""
        return self.execute(command, ExecPolicy.NON_FATAL).ok

    def copy_directory(
        self,
        local_path: Path,
        remote_path: str,
        *,
        error: Type[DeployError] = BuildError,
    ) -> None:
        if not self._reachable:
            raise ConnectivityError(
                f"No verified connection to {self.target.display}", command="copy"
            )
        description = f"copy {local_path} -> {self.target.display}:{remote_path}"
        copied = self.transport.copy_directory(self.target, Path(local_path), remote_path)
        self.audit.command(description, "success" if copied else "failure", 0 if copied else 1)
        if not copied:
            raise error(f"Failed to transfer project files to {remote_path}", command=description)

