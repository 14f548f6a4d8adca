"""SSH session management built on Paramiko."""

from __future__ import annotations

import os
import posixpath
import socket
import stat
import sys
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

import paramiko

from ..models import RemoteCommandResult
from .credentials import SSHCredentials

DEFAULT_EXCLUDES = (".git",)


class SSHConnectionError(RuntimeError):
    """Raised when an SSH connection cannot be established."""

    pass


class SSHSession:
    """High-level wrapper around paramiko.SSHClient."""

    def __init__(
        self,
        credentials: SSHCredentials,
        *,
        client_factory: Callable[[], paramiko.SSHClient] | None = None,
    ) -> None:
        self.credentials = credentials
        self._client_factory = client_factory or paramiko.SSHClient
        self._client: Optional[paramiko.SSHClient] = None

    @property
    def connected(self) -> bool:
        return self._client is not None

    def __enter__(self) -> "SSHSession":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[override]
        self.close()

    def connect(self) -> None:
        if self._client:
            return
        client = self._client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            connect_kwargs = {
                "hostname": self.credentials.host,
                "port": self.credentials.port,
                "username": self.credentials.username,
                "timeout": self.credentials.timeout,
                "key_filename": self.credentials.key_path,
                "look_for_keys": False,
                "allow_agent": False,
            }
            if self.credentials.passphrase:
                connect_kwargs["passphrase"] = self.credentials.passphrase
            client.connect(**connect_kwargs)
        except Exception as exc:  # pragma: no cover - network errors hard to simulate
            client.close()
            raise SSHConnectionError(str(exc)) from exc
        self._client = client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def run(
        self,
        command: str,
        *,
        timeout: Optional[int] = None,
        stream_output: bool = False,
    ) -> RemoteCommandResult:
        """
        Execute a command on the remote server.

        Args:
            command: The command to execute
            timeout: Total timeout in seconds (default: 600)
            stream_output: Echo remote output to the local console while it runs

        Returns:
            RemoteCommandResult with command output and exit status. A command
            that exceeds `timeout` is reported with exit status -1.
        """
        if not self._client:
            self.connect()
        assert self._client is not None

        if timeout is None:
            timeout = 600

        _stdin, stdout, stderr = self._client.exec_command(command, timeout=timeout)

        if stream_output:
            return self._collect_streaming(command, stdout, stderr, timeout)

        stdout.channel.settimeout(float(timeout))
        try:
            exit_status = stdout.channel.recv_exit_status()
            stdout_text = stdout.read().decode("utf-8", errors="replace")
            stderr_text = stderr.read().decode("utf-8", errors="replace")
        except socket.timeout:
            stdout.channel.close()
            return RemoteCommandResult(
                command=command,
                exit_status=-1,
                stderr=f"TIMEOUT: Command did not complete within {timeout} seconds.",
            )

        return RemoteCommandResult(
            command=command,
            exit_status=exit_status,
            stdout=stdout_text.strip(),
            stderr=stderr_text.strip(),
        )

    def _collect_streaming(self, command, stdout, stderr, timeout: int) -> RemoteCommandResult:
        channel = stdout.channel
        stdout_chunks = []
        stderr_chunks = []
        start_time = time.time()

        def drain() -> None:
            while channel.recv_ready():
                chunk = channel.recv(4096).decode("utf-8", errors="replace")
                stdout_chunks.append(chunk)
                sys.stdout.write(chunk)
            while channel.recv_stderr_ready():
                chunk = channel.recv_stderr(4096).decode("utf-8", errors="replace")
                stderr_chunks.append(chunk)
                sys.stderr.write(chunk)
            sys.stdout.flush()
            sys.stderr.flush()

        while not channel.exit_status_ready():
            drain()
            if time.time() - start_time > timeout:
                channel.close()
                return RemoteCommandResult(
                    command=command,
                    exit_status=-1,
                    stdout="".join(stdout_chunks).strip(),
                    stderr=f"TIMEOUT: Command exceeded {timeout} seconds total execution time.",
                )
            time.sleep(0.1)

        drain()
        return RemoteCommandResult(
            command=command,
            exit_status=channel.recv_exit_status(),
            stdout="".join(stdout_chunks).strip(),
            stderr="".join(stderr_chunks).strip(),
        )

    def put_directory(
        self,
        local_dir: Path,
        remote_dir: str,
        *,
        exclude: Iterable[str] = DEFAULT_EXCLUDES,
    ) -> int:
        """Copy `local_dir` recursively to `remote_dir` over SFTP.

        Returns the number of files transferred. File modes are preserved so
        entrypoint scripts stay executable.
        """
        if not self._client:
            self.connect()
        assert self._client is not None

        excluded = set(exclude)
        local_dir = Path(local_dir)
        copied = 0
        sftp = self._client.open_sftp()
        try:
            self._ensure_remote_dir(sftp, remote_dir)
            for root, dirs, files in os.walk(local_dir):
                dirs[:] = sorted(d for d in dirs if d not in excluded)
                relative = Path(root).relative_to(local_dir)
                remote_root = remote_dir
                if relative.parts:
                    remote_root = posixpath.join(remote_dir, *relative.parts)
                    self._ensure_remote_dir(sftp, remote_root)
                for name in sorted(files):
                    if name in excluded:
                        continue
                    local_path = Path(root) / name
                    if local_path.is_symlink() and not local_path.exists():
                        continue
                    remote_path = posixpath.join(remote_root, name)
                    sftp.put(str(local_path), remote_path)
                    sftp.chmod(remote_path, stat.S_IMODE(local_path.stat().st_mode))
                    copied += 1
        finally:
            sftp.close()
        return copied

    @staticmethod
    def _ensure_remote_dir(sftp, remote_dir: str) -> None:
        current = "/" if remote_dir.startswith("/") else ""
        for part in [p for p in remote_dir.split("/") if p]:
            current = posixpath.join(current, part) if current else part
            try:
                sftp.stat(current)
            except IOError:
                sftp.mkdir(current)
