"""
stackvm - Logging Setup

Library modules only ever call logging.getLogger(__name__). Handlers are
attached here, once, by whoever owns the process (the svm CLI, or a host
embedding the VM).

Console output goes through rich's RichHandler on stderr so it never mixes
with program output on stdout. An optional log file captures everything at
DEBUG, including per-instruction trace lines.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str = "stackvm",
    level: int = logging.DEBUG,
    console_level: int = logging.WARNING,
    log_file: Optional[Path] = None,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure and return the package logger.

    Calling it again replaces the handlers it installed earlier, so the CLI
    (and tests) can reconfigure levels freely.
    """
    logger = logging.getLogger(name)
    for h in list(logger.handlers):
        if getattr(h, "_stackvm_owned", False):
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)

    # ── File handler: captures everything (DEBUG+) ──
    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_path), encoding="utf-8")
        fh.setLevel(logging.DEBUG)
        fh.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
        fh._stackvm_owned = True
        logger.addHandler(fh)

    # ── Console handler: only important stuff (WARNING+ default) ──
    if rich_console:
        ch = RichHandler(
            level=console_level,
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
    else:
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    ch.setLevel(console_level)
    ch._stackvm_owned = True
    logger.addHandler(ch)

    if log_file is not None:
        logger.debug("Logger initialized: %s (file %s, console %s)",
                     name, log_file, logging.getLevelName(console_level))
    return logger
