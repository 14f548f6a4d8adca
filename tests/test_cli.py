import pytest

from dockship import main
from dockship.cli import build_parser, run_cli


@pytest.fixture(autouse=True)
def _no_env_defaults(monkeypatch):
    for name in (
        "DOCKSHIP_SSH_HOST",
        "DOCKSHIP_SSH_USERNAME",
        "DOCKSHIP_SSH_KEY_PATH",
        "DOCKSHIP_APP_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


def test_deploy_arguments_are_parsed() -> None:
    args = build_parser().parse_args(
        [
            "deploy",
            "--repo", "https://github.com/acme/shop-api.git",
            "--host", "203.0.113.10",
            "--user", "ubuntu",
            "--key-path", "~/.ssh/id_ed25519",
            "--port", "8000",
            "--domain", "shop.example.com",
        ]
    )
    assert args.command == "deploy"
    assert args.port == "8000"
    assert args.domain == "shop.example.com"
    assert args.ssh_port is None


def test_missing_parameters_exit_with_failure(tmp_path, caplog) -> None:
    code = run_cli(["--log-dir", str(tmp_path), "--workspace", str(tmp_path / "ws"), "deploy", "--port", "8000"])

    assert code == 1
    assert "Missing deployment parameters: repo" in caplog.text
    assert not list(tmp_path.glob("deploy_*.log"))


def test_invalid_port_is_rejected_locally(tmp_path, caplog) -> None:
    code = run_cli(
        [
            "--log-dir", str(tmp_path),
            "deploy",
            "--repo", "https://github.com/acme/shop-api.git",
            "--port", "70000",
        ]
    )

    assert code == 1
    assert "Invalid port 70000" in caplog.text


def test_missing_target_is_reported(tmp_path, caplog) -> None:
    code = run_cli(["--log-dir", str(tmp_path), "cleanup", "--repo", "https://github.com/acme/shop-api.git"])

    assert code == 1
    assert "host, user, key-path" in caplog.text


def test_missing_config_file(tmp_path) -> None:
    assert run_cli(["--config", str(tmp_path / "nope.json"), "logs"]) == 1


def test_logs_listing(tmp_path, capsys) -> None:
    (tmp_path / "deploy_20240101_120000.log").write_text(
        "2024-01-01 12:00:00 [INFO] Deployment started\n", encoding="utf-8"
    )
    (tmp_path / "deploy_20240102_120000.log").write_text(
        "2024-01-02 12:00:00 [ERROR] Stage 'proxy' failed\n", encoding="utf-8"
    )

    assert run_cli(["--log-dir", str(tmp_path), "logs", "--list"]) == 0
    out = capsys.readouterr().out
    assert "deploy_20240101_120000.log" in out
    assert "deploy_20240102_120000.log" in out
    assert "failed" in out


def test_logs_show_specific_file(tmp_path, capsys) -> None:
    (tmp_path / "deploy_20240101_120000.log").write_text("hello audit\n", encoding="utf-8")

    assert run_cli(["--log-dir", str(tmp_path), "logs", "--file", "deploy_20240101_120000.log"]) == 0
    assert "hello audit" in capsys.readouterr().out
    assert run_cli(["--log-dir", str(tmp_path), "logs", "--file", "missing.log"]) == 1


def test_logs_empty_directory(tmp_path, capsys) -> None:
    assert run_cli(["--log-dir", str(tmp_path / "none"), "logs"]) == 0
    assert "No deployment logs found" in capsys.readouterr().out


def test_entry_point_exits_with_cli_status(monkeypatch) -> None:
    monkeypatch.setattr(main, "run_cli", lambda: 1)
    with pytest.raises(SystemExit) as caught:
        main.app_main()
    assert caught.value.code == 1


def test_interrupt_exits_130_with_rerun_hint(monkeypatch, caplog) -> None:
    def interrupted():
        raise KeyboardInterrupt

    monkeypatch.setattr(main, "run_cli", interrupted)
    with pytest.raises(SystemExit) as caught:
        main.app_main()
    assert caught.value.code == main.EXIT_INTERRUPTED
    assert "run the same command again" in caplog.text
