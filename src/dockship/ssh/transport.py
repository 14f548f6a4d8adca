"""Remote transport: run a command on a target, copy a directory to it."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import paramiko

from ..models import DeploymentTarget, RemoteCommandResult
from ..utils.logging import get_logger
from .credentials import SSHCredentials
from .session import SSHConnectionError, SSHSession

logger = get_logger(__name__)

SessionFactory = Callable[[SSHCredentials], SSHSession]


class SSHTransport:
    """Keeps one paramiko session per target for the duration of a run."""

    def __init__(
        self,
        *,
        session_factory: Optional[SessionFactory] = None,
        command_timeout: int = 1800,
        stream_output: bool = False,
    ) -> None:
        self._session_factory = session_factory or SSHSession
        self._sessions: Dict[Tuple[str, int, str], SSHSession] = {}
        self.command_timeout = command_timeout
        self.stream_output = stream_output

    def _session(self, target: DeploymentTarget) -> SSHSession:
        key = (target.host, target.port, target.username)
        session = self._sessions.get(key)
        if session is None:
            credentials = SSHCredentials.from_target(target)
            credentials.validate()
            session = self._session_factory(credentials)
            self._sessions[key] = session
        session.connect()
        return session

    def probe_reachable(self, target: DeploymentTarget) -> bool:
        try:
            result = self._session(target).run("echo 'SSH connection successful.'", timeout=target.timeout)
        except (SSHConnectionError, ValueError, paramiko.SSHException, OSError) as exc:
            logger.debug("Reachability probe for %s failed: %s", target.display, exc)
            return False
        return result.ok

    def run(self, target: DeploymentTarget, command: str) -> RemoteCommandResult:
        try:
            session = self._session(target)
        except (SSHConnectionError, ValueError) as exc:
            return RemoteCommandResult(command=command, exit_status=255, stderr=str(exc))
        try:
            return session.run(command, timeout=self.command_timeout, stream_output=self.stream_output)
        except (paramiko.SSHException, OSError) as exc:
            self.reset(target)
            return RemoteCommandResult(command=command, exit_status=255, stderr=str(exc))

    def copy_directory(self, target: DeploymentTarget, local_path: Path, remote_path: str) -> bool:
        try:
            copied = self._session(target).put_directory(Path(local_path), remote_path)
        except (SSHConnectionError, ValueError, paramiko.SSHException, OSError) as exc:
            logger.error("Copy of %s to %s:%s failed: %s", local_path, target.display, remote_path, exc)
            return False
        logger.debug("Copied %d files to %s:%s", copied, target.display, remote_path)
        return True

    def reset(self, target: DeploymentTarget) -> None:
        """Drop the session so the next call logs in again."""
        session = self._sessions.pop((target.host, target.port, target.username), None)
        if session is not None:
            session.close()

    def close(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
