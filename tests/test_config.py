import json
import os
import tempfile
import unittest
from pathlib import Path

import pytest

from dockship.config import AppConfig, load_config


_ENV_VARS = (
    "DOCKSHIP_SSH_HOST",
    "DOCKSHIP_SSH_PORT",
    "DOCKSHIP_SSH_USERNAME",
    "DOCKSHIP_SSH_KEY_PATH",
    "DOCKSHIP_GIT_TOKEN",
    "DOCKSHIP_BRANCH",
    "DOCKSHIP_APP_PORT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class ConfigTests(unittest.TestCase):
    def test_loads_default_config(self) -> None:
        config = load_config()
        self.assertIsInstance(config, AppConfig)
        self.assertEqual(config.deployment.default_branch, "main")
        self.assertEqual(config.proxy.listen_port, 80)
        self.assertEqual(config.validation.reachability_attempts, 5)

    def test_loads_custom_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            path.write_text(
                json.dumps(
                    {
                        "deployment": {"_comment": "ignored", "command_timeout": 60},
                        "validation": {"reachability_attempts": 2, "backoff_seconds": 0.5},
                    }
                ),
                encoding="utf-8",
            )
            config = load_config(str(path))
        self.assertEqual(config.deployment.command_timeout, 60)
        self.assertEqual(config.deployment.ssh_timeout, 20)
        self.assertEqual(config.validation.reachability_attempts, 2)
        self.assertEqual(config.validation.backoff_seconds, 0.5)
        self.assertEqual(config.provisioning.compose_version, "1.29.2")

    def test_explicit_missing_path_raises(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_config("does/not/exist.json")


def test_env_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DOCKSHIP_SSH_HOST", "203.0.113.10")
    monkeypatch.setenv("DOCKSHIP_SSH_PORT", "2222")
    monkeypatch.setenv("DOCKSHIP_SSH_USERNAME", "deploy")
    monkeypatch.setenv("DOCKSHIP_SSH_KEY_PATH", "~/.ssh/id_deploy")
    monkeypatch.setenv("DOCKSHIP_GIT_TOKEN", "ghp_example")
    monkeypatch.setenv("DOCKSHIP_APP_PORT", "8000")

    deployment = load_config().deployment

    assert deployment.default_host == "203.0.113.10"
    assert deployment.default_ssh_port == 2222
    assert deployment.default_username == "deploy"
    assert deployment.default_key_path == "~/.ssh/id_deploy"
    assert deployment.git_token == "ghp_example"
    assert deployment.default_app_port == 8000


def test_from_dict_tolerates_missing_sections() -> None:
    config = AppConfig.from_dict({"proxy": None})
    assert config.proxy.sites_enabled == "/etc/nginx/sites-enabled"
    assert os.path.basename(config.deployment.log_dir) == "deploy_logs"
