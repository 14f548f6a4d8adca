"""Configuration loading utilities for dockship."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .paths import LOGS_DIR, WORKSPACE_DIR

# Load .env file if it exists
load_dotenv()

_DEFAULT_CONFIG_PATH = Path("config/default_config.json")


@dataclass
class DeploymentConfig:
    """Defaults for the deployment target and application."""

    workspace_root: str = str(WORKSPACE_DIR)
    log_dir: str = str(LOGS_DIR)
    default_host: Optional[str] = None
    default_ssh_port: int = 22
    default_username: Optional[str] = None
    default_key_path: Optional[str] = None
    default_branch: str = "main"
    default_app_port: Optional[int] = None
    git_token: Optional[str] = None
    ssh_timeout: int = 20
    command_timeout: int = 1800


@dataclass
class ProvisioningConfig:
    compose_version: str = "1.29.2"
    upgrade_packages: bool = False


@dataclass
class ProxyConfig:
    sites_available: str = "/etc/nginx/sites-available"
    sites_enabled: str = "/etc/nginx/sites-enabled"
    main_config: str = "/etc/nginx/nginx.conf"
    listen_port: int = 80


@dataclass
class ValidationConfig:
    reachability_attempts: int = 5
    backoff_seconds: float = 1.0
    http_timeout: float = 10.0


@dataclass
class AppConfig:
    """Top-level configuration."""

    deployment: DeploymentConfig = field(default_factory=DeploymentConfig)
    provisioning: ProvisioningConfig = field(default_factory=ProvisioningConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppConfig":
        sections = {}
        for name, section_cls in (
            ("deployment", DeploymentConfig),
            ("provisioning", ProvisioningConfig),
            ("proxy", ProxyConfig),
            ("validation", ValidationConfig),
        ):
            section_payload = payload.get(name, {}) or {}
            # 以下划线开头的键是注释
            section_payload = {k: v for k, v in section_payload.items() if not k.startswith("_")}
            sections[name] = section_cls(**{**section_cls().__dict__, **section_payload})
        return cls(**sections)


def _apply_env_overrides(config: AppConfig) -> None:
    deployment = config.deployment

    env_host = os.getenv("DOCKSHIP_SSH_HOST")
    if env_host:
        deployment.default_host = env_host

    env_port = os.getenv("DOCKSHIP_SSH_PORT")
    if env_port:
        deployment.default_ssh_port = int(env_port)

    env_username = os.getenv("DOCKSHIP_SSH_USERNAME")
    if env_username:
        deployment.default_username = env_username

    env_key_path = os.getenv("DOCKSHIP_SSH_KEY_PATH")
    if env_key_path:
        deployment.default_key_path = env_key_path

    env_token = os.getenv("DOCKSHIP_GIT_TOKEN")
    if env_token:
        deployment.git_token = env_token

    env_branch = os.getenv("DOCKSHIP_BRANCH")
    if env_branch:
        deployment.default_branch = env_branch

    env_app_port = os.getenv("DOCKSHIP_APP_PORT")
    if env_app_port:
        deployment.default_app_port = int(env_app_port)


def load_config(path: Optional[str] = None) -> AppConfig:
    """Load configuration from `path` or the default location.

    An explicit `path` must exist. Without one, ``config/default_config.json``
    is used when present and built-in defaults otherwise.

    Environment variables (higher priority than config file):
    - DOCKSHIP_SSH_HOST: Default SSH host
    - DOCKSHIP_SSH_PORT: Default SSH port
    - DOCKSHIP_SSH_USERNAME: Default SSH username
    - DOCKSHIP_SSH_KEY_PATH: Path to SSH private key
    - DOCKSHIP_GIT_TOKEN: Personal access token for cloning
    - DOCKSHIP_BRANCH: Branch to deploy
    - DOCKSHIP_APP_PORT: Application internal port
    """

    if path:
        candidate = Path(path)
        if not candidate.is_file():
            raise FileNotFoundError(f"Could not find configuration file: {candidate}")
    else:
        candidate = _DEFAULT_CONFIG_PATH

    if candidate.is_file():
        with candidate.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        config = AppConfig.from_dict(data)
    else:
        config = AppConfig()

    _apply_env_overrides(config)
    return config
