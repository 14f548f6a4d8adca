"""Logging helpers."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

_LOGGING_CONFIGURED = False
_AUDIT_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_AUDIT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    global _LOGGING_CONFIGURED
    if not _LOGGING_CONFIGURED:
        logging.basicConfig(
            level=logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
        )
        _LOGGING_CONFIGURED = True
    return logging.getLogger(name)


def set_verbose(enabled: bool) -> None:
    logging.getLogger("dockship").setLevel(logging.DEBUG if enabled else logging.INFO)


class AuditLog:
    """Append-only, timestamped record of pipeline lifecycle events.

    Each run gets its own ``deploy_<timestamp>.log`` file. Lines are also
    propagated to the regular console logger.
    """

    def __init__(self, log_dir: Path, *, run_name: Optional[str] = None) -> None:
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        stamp = run_name or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.path = self.log_dir / f"deploy_{stamp}.log"
        self._logger = logging.getLogger(f"dockship.audit.{stamp}")
        self._logger.setLevel(logging.DEBUG)
        self._handler = logging.FileHandler(self.path, mode="a", encoding="utf-8")
        self._handler.setFormatter(logging.Formatter(_AUDIT_FORMAT, _AUDIT_DATEFMT))
        self._logger.addHandler(self._handler)
        get_logger()

    def info(self, message: str, *args: object) -> None:
        self._logger.info(message, *args)

    def success(self, message: str, *args: object) -> None:
        self._logger.log(SUCCESS, message, *args)

    def error(self, message: str, *args: object) -> None:
        self._logger.error(message, *args)

    def command(self, command: str, outcome: str, exit_status: int) -> None:
        self._logger.info("remote[%s] exit=%s: %s", outcome, exit_status, command)

    def close(self) -> None:
        self._handler.flush()
        self._logger.removeHandler(self._handler)
        self._handler.close()

    def __enter__(self) -> "AuditLog":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
