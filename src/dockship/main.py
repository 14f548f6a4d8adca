"""Console entry point: ``dockship = dockship.main:app_main``."""

from __future__ import annotations

import sys

from .cli import run_cli
from .utils.logging import get_logger

logger = get_logger(__name__)

# conventional exit status for SIGINT
EXIT_INTERRUPTED = 130


def app_main() -> None:
    try:
        exit_code = run_cli()
    except KeyboardInterrupt:
        # 中断的运行没有回滚，重新执行同一命令即可收敛
        logger.error("Interrupted. The host may be partly deployed; run the same command again to converge.")
        exit_code = EXIT_INTERRUPTED
    sys.exit(exit_code)


if __name__ == "__main__":  # pragma: no cover
    app_main()
