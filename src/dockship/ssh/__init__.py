"""SSH utilities for dockship."""

from .credentials import SSHCredentials
from .session import SSHConnectionError, SSHSession
from .transport import SSHTransport

__all__ = [
    "SSHCredentials",
    "SSHConnectionError",
    "SSHSession",
    "SSHTransport",
]
