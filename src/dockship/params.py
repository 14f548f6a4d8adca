"""Validation of user-supplied deployment parameters.

Everything here runs locally, before the orchestrator is handed control, so a
rejected value never causes a remote call.
"""

from __future__ import annotations

import ipaddress
import os
import re
import socket
import stat
from pathlib import Path
from typing import Callable, Optional

from .errors import ValidationError
from .models import ApplicationSpec, DeploymentTarget, RepositorySpec, derive_project_name

_REPO_URL_PATTERN = re.compile(r"^(https?://|git@|ssh://|git://)\S+$")
_DOTTED_QUAD_PATTERN = re.compile(r"^\d{1,3}(\.\d{1,3}){3}$")
_HOSTNAME_PATTERN = re.compile(
    r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)(\.[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$"
)

Resolver = Callable[[str], str]


def validate_repo_url(url: str) -> str:
    url = (url or "").strip()
    if not _REPO_URL_PATTERN.match(url):
        raise ValidationError(f"Invalid Git repository URL: {url!r}")
    derive_project_name(url)
    return url


def validate_host(host: str, *, resolver: Optional[Resolver] = None) -> str:
    """Accept a dotted-quad IPv4 address or a hostname that resolves."""
    host = (host or "").strip()
    if _DOTTED_QUAD_PATTERN.match(host):
        try:
            ipaddress.IPv4Address(host)
        except ValueError as exc:
            raise ValidationError(f"Invalid IP address: {host}") from exc
        return host
    if not _HOSTNAME_PATTERN.match(host) or host.replace(".", "").isdigit():
        raise ValidationError(f"Invalid host address: {host!r}")
    resolve = resolver or socket.gethostbyname
    try:
        resolve(host)
    except (socket.gaierror, UnicodeError) as exc:
        raise ValidationError(f"Host {host} does not resolve: {exc}") from exc
    return host


def validate_key_file(key_path: str) -> str:
    """The key must exist and must not be readable by group or others."""
    if not key_path:
        raise ValidationError("No SSH key path provided")
    path = Path(os.path.expanduser(key_path))
    if not path.is_file():
        raise ValidationError(f"SSH key not found at {key_path}")
    mode = stat.S_IMODE(path.stat().st_mode)
    if mode & 0o077:
        raise ValidationError(
            f"SSH key {key_path} has permissions {oct(mode)}; expected 0600 or stricter"
        )
    return str(path)


def validate_port(port: object) -> int:
    try:
        value = int(str(port).strip())
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid port {port!r}: not a number") from exc
    ApplicationSpec(port=value).validate()
    return value


def build_target(
    host: str,
    username: str,
    key_path: str,
    *,
    ssh_port: int = 22,
    timeout: int = 20,
    resolver: Optional[Resolver] = None,
) -> DeploymentTarget:
    if not username:
        raise ValidationError("No SSH username provided")
    target = DeploymentTarget(
        host=validate_host(host, resolver=resolver),
        username=username,
        key_path=validate_key_file(key_path),
        port=ssh_port,
        timeout=timeout,
    )
    target.validate()
    return target


def build_repository(url: str, token: Optional[str] = None, branch: Optional[str] = None) -> RepositorySpec:
    return RepositorySpec(
        url=validate_repo_url(url),
        token=token or None,
        branch=(branch or "main").strip() or "main",
    )
