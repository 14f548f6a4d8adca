"""SSH credential helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from ..models import DeploymentTarget


@dataclass
class SSHCredentials:
    """Normalized key-based credential payload for paramiko."""

    host: str
    username: str
    key_path: str
    port: int = 22
    passphrase: Optional[str] = None
    timeout: int = 20

    @classmethod
    def from_target(cls, target: DeploymentTarget) -> "SSHCredentials":
        return cls(
            host=target.host,
            username=target.username,
            key_path=os.path.expanduser(target.key_path),
            port=target.port,
            timeout=target.timeout,
            passphrase=os.getenv("DOCKSHIP_SSH_KEY_PASSPHRASE") or None,
        )

    def validate(self) -> None:
        if not self.key_path:
            raise ValueError("Key authentication requires a key_path")
        if not os.path.isfile(self.key_path):
            raise ValueError(f"SSH key not found at {self.key_path}")
