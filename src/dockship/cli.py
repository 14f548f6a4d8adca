"""Command-line interface for dockship."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import AppConfig, load_config
from .errors import DeployError, ValidationError
from .models import PipelineReport, StageStatus
from .params import build_repository, build_target, validate_port
from .pipeline import PipelineOrchestrator
from .utils.logging import get_logger, set_verbose
from .workspace import WorkspaceManager

logger = get_logger(__name__)


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    workspace: str
    log_dir: str


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--repo", help="Git repository URL (also used to derive the project name)")
    parser.add_argument("--host", help="Remote server IP address or hostname")
    parser.add_argument("--user", help="Remote server SSH username")
    parser.add_argument("--key-path", help="Path to the SSH private key")
    parser.add_argument("--ssh-port", type=int, default=None, help="SSH port (default: 22)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dockship",
        description="Provision a remote host and deploy a Dockerized application behind Nginx.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--workspace",
        type=str,
        default=None,
        help="Directory for local working copies.",
    )
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Directory for deployment audit logs.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy_parser = subparsers.add_parser(
        "deploy", help="Run the full deployment pipeline"
    )
    _add_target_arguments(deploy_parser)
    deploy_parser.add_argument("--token", default=None, help="Personal access token for cloning")
    deploy_parser.add_argument("--branch", default=None, help="Branch to deploy (default: main)")
    deploy_parser.add_argument(
        "--port", default=None, help="Application internal container port, e.g. 8000"
    )
    deploy_parser.add_argument(
        "--domain", default=None,
        help="Public name for the Nginx site (default: the host address)",
    )

    cleanup_parser = subparsers.add_parser(
        "cleanup", help="Remove a deployment from the remote host"
    )
    _add_target_arguments(cleanup_parser)
    cleanup_parser.add_argument(
        "--purge-local", action="store_true",
        help="Also delete the local working copy",
    )

    # logs 子命令 - 查看部署审计日志
    logs_parser = subparsers.add_parser("logs", help="View deployment audit logs")
    logs_parser.add_argument(
        "--list", "-l", action="store_true", dest="list_logs",
        help="List all available logs"
    )
    logs_parser.add_argument("--file", "-f", type=str, help="Show a specific log file")

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    return CLIContext(
        config=config,
        workspace=args.workspace or config.deployment.workspace_root,
        log_dir=args.log_dir or config.deployment.log_dir,
    )


def _require(values: dict) -> None:
    missing = [name for name, value in values.items() if value in (None, "")]
    if missing:
        raise ValidationError("Missing deployment parameters: " + ", ".join(missing))


def _target_from_args(args: argparse.Namespace, context: CLIContext):
    deployment = context.config.deployment
    host = args.host or deployment.default_host
    username = args.user or deployment.default_username
    key_path = args.key_path or deployment.default_key_path
    _require({"host": host, "user": username, "key-path": key_path})
    return build_target(
        host,
        username,
        key_path,
        ssh_port=args.ssh_port or deployment.default_ssh_port,
        timeout=deployment.ssh_timeout,
    )


def _build_orchestrator(context: CLIContext) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        context.config,
        workspace=WorkspaceManager(Path(context.workspace)),
        log_dir=context.log_dir,
    )


def handle_deploy_command(args: argparse.Namespace, context: CLIContext) -> int:
    deployment = context.config.deployment
    port_value = args.port if args.port is not None else deployment.default_app_port
    _require({"repo": args.repo, "port": port_value})
    port = validate_port(port_value)
    repository = build_repository(
        args.repo,
        token=args.token or deployment.git_token,
        branch=args.branch or deployment.default_branch,
    )
    target = _target_from_args(args, context)

    report = _build_orchestrator(context).deploy(target, repository, port, domain=args.domain)
    _print_report(report)
    return 0 if report.ok else 1


def handle_cleanup_command(args: argparse.Namespace, context: CLIContext) -> int:
    _require({"repo": args.repo})
    repository = build_repository(args.repo)
    target = _target_from_args(args, context)

    report = _build_orchestrator(context).cleanup(target, repository, purge_local=args.purge_local)
    _print_report(report)
    return 0 if report.ok else 1


def handle_logs_command(args: argparse.Namespace, context: CLIContext) -> int:
    """Handle the logs subcommand."""
    log_dir = Path(context.log_dir)
    log_files = sorted(log_dir.glob("deploy_*.log"), key=lambda p: p.stat().st_mtime, reverse=True) if log_dir.exists() else []

    if not log_files and not args.file:
        print("📁 No deployment logs found. Run a deployment first.")
        return 0

    if args.list_logs:
        print(f"📁 Deployment logs in: {log_dir}\n")
        for i, log_file in enumerate(log_files, 1):
            lines = log_file.read_text(encoding="utf-8").splitlines()
            status = "❌ failed" if any("[ERROR]" in line for line in lines) else "✅ ok"
            print(f"{i:<4} {status:<10} {log_file.name}")
        return 0

    target_file = log_files[0] if not args.file else Path(args.file)
    if not target_file.exists():
        target_file = log_dir / args.file
    if not target_file.exists():
        print(f"❌ Log file not found: {args.file}")
        return 1
    print(target_file.read_text(encoding="utf-8"), end="")
    return 0


def _print_report(report: PipelineReport) -> None:
    icons = {
        StageStatus.APPLIED: "✓",
        StageStatus.SKIPPED: "•",
        StageStatus.TOLERATED: "⚠️",
        StageStatus.FAILED: "✗",
    }
    print(f"\n{'=' * 60}")
    print(f"{report.mode.upper()} {report.project_name}: {'SUCCESS' if report.ok else 'FAILED'}")
    print(f"{'=' * 60}")
    for record in report.records:
        detail = f" - {record.detail.splitlines()[0]}" if record.detail else ""
        print(f"  {icons[record.status]} {record.name} [{record.status.value}]{detail}")
    if report.error is not None:
        print(f"\n  Failed stage: {report.failed_stage}")
        if report.error.command:
            print(f"  Command: {report.error.command}")
    if report.log_file:
        print(f"\n📄 Audit log: {report.log_file}")
    print(f"{'=' * 60}\n")


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)

    if args.command == "logs":
        return handle_logs_command(args, context)
    if args.command == "deploy":
        return handle_deploy_command(args, context)
    if args.command == "cleanup":
        return handle_cleanup_command(args, context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    set_verbose(args.verbose)
    try:
        return dispatch_command(args)
    except (DeployError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
