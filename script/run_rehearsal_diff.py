from __future__ import annotations

"""Entry script for computing the rehearsal set of a release repository change.

This is a thin wrapper around ``rehearsal.main`` that:

- Initialises settings.
- Configures Loguru (stderr plus a rotating log file) from ``Settings.log_level``
  and routes standard-library logging (used by GitPython) through Loguru.
- Delegates CLI parsing and control flow to ``rehearsal.main.main``.

Usage (with uv):

    uv run python script/run_rehearsal_diff.py --repo ../release --base-ref origin/master
    uv run python script/run_rehearsal_diff.py --json --cluster-profile aws
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Sequence

from loguru import logger
from rich.console import Console

from rehearsal.config import Settings, get_settings
from rehearsal.main import main as rehearsal_main

console = Console(stderr=True)


class _LoguruInterceptHandler(logging.Handler):
    """Bridge standard-library logging records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - thin wrapper
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(exception=record.exc_info).log(level, record.getMessage())


def _configure_stdlib_logging(level: str) -> None:
    handler: logging.Handler = _LoguruInterceptHandler()

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    git_logger = logging.getLogger("git")
    git_logger.handlers = [handler]
    git_logger.setLevel(level)

    logging.captureWarnings(True)


def _resolve_logs_dir(settings: Settings) -> Path:
    base_dir = Path(settings.logs_base_dir).expanduser() if settings.logs_base_dir else Path.cwd()
    log_dir = base_dir / "logs" / "rehearsal"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _configure_logging() -> None:
    settings = get_settings()
    level = (settings.log_level or "INFO").upper()

    logger.remove()
    logger.add(sys.stderr, level=level, backtrace=False, diagnose=False)

    log_file = _resolve_logs_dir(settings) / f"rehearsal-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
    logger.add(
        log_file,
        level=level,
        rotation="10 MB",
        retention="14 days",
        backtrace=False,
        diagnose=False,
    )

    _configure_stdlib_logging(level)

    logger.bind(module="script.run_rehearsal_diff").info(
        "Logging initialised at level {} file={}", level, log_file
    )
    console.log("[green]Rehearsal logs[/] -> {}".format(log_file))


def main(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    return int(rehearsal_main(argv))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
