"""
sim8086 — Logging Setup

Same pattern as the virtual flash/vECU tools: one named logger tree,
rich console handler for the interactive side, optional plain file
handler that captures everything at DEBUG.

Library modules only ever call ``logging.getLogger(__name__)``; handlers
are attached here, and only the CLI calls :func:`setup_logging`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from . import config


def setup_logging(
    console_level: int = config.DEFAULT_CONSOLE_LEVEL,
    log_file: Optional[Path] = None,
    name: str = config.LOGGER_NAME,
) -> logging.Logger:
    """Configure and return the package logger.

    Console output goes to stderr so it never interleaves with the
    disassembly on stdout. Calling this again replaces the handlers.
    """
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG if log_file else console_level)
    logger.propagate = False

    # ── Console handler ──
    ch = RichHandler(
        console=Console(stderr=True),
        level=console_level,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    ch.setLevel(console_level)
    logger.addHandler(ch)

    # ── File handler: captures everything (DEBUG+) ──
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_file), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(
            config.FILE_LOG_FORMAT, datefmt=config.FILE_LOG_DATEFMT,
        ))
        logger.addHandler(fh)
        logger.info("Log file: %s", log_file)

    return logger
