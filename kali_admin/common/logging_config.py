from __future__ import annotations

import logging
from pathlib import Path
from typing import Final


FILE_LOG_FORMAT: Final[str] = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_LOG_FORMAT: Final[str] = "%(levelname)s | %(name)s | %(message)s"


def configure_logging(level: int = logging.INFO, log_dir: str | None = None) -> None:
    """Configure standard library logging for the admin CLI.

    Diagnostics go to stderr next to the operator console. If log_dir is
    provided they are also appended to '<log_dir>/run.log', which keeps one
    history across runs that resume after a reboot.
    """
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
    handlers: list[logging.Handler] = [console]
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(Path(log_dir) / "run.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)
