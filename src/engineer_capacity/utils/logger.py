# utils/logger.py
"""
Shared logging setup for the ledger.

The file handler under LOG_DIR is built on the first emitted record, not
at import. CLI reports go to stdout; the console handler writes WARNING
and above to stderr.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(filename)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_handlers: Optional[List[logging.Handler]] = None


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()


def log_file() -> Path:
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    return Path(os.getenv("LOG_FILE", log_dir / "engineer_capacity.log"))


def _build_handlers() -> List[logging.Handler]:
    global _handlers
    if _handlers is None:
        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

        path = log_file()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(log_level())
        file_handler.setFormatter(formatter)

        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(formatter)

        _handlers = [file_handler, console_handler]
    return _handlers


class _LazyHandler(logging.Handler):
    """Forwards records to the shared handlers, creating them on first record."""

    def emit(self, record: logging.LogRecord) -> None:
        for handler in _build_handlers():
            if record.levelno >= handler.level:
                handler.handle(record)


_lazy = _LazyHandler()


def get_logger(name: str = "engineer_capacity") -> logging.Logger:
    """Logger for ``name`` wired to the shared ledger handlers exactly once."""
    logger = logging.getLogger(name)
    logger.setLevel(log_level())

    if _lazy not in logger.handlers:
        logger.addHandler(_lazy)

    return logger
