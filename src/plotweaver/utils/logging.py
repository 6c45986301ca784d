"""Root logger configuration for the ``plotweaver`` console script."""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["setup_logging", "get_log_path"]

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_FILENAME = "plotweaver.log"
# Third-party loggers that are chatty at DEBUG.
_QUIET_LIBRARIES: tuple[str, ...] = ("asyncio", "httpx", "httpcore", "openai")

_CONFIGURED = False
_LOG_PATH: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Send log records to ``<log_dir>/plotweaver.log`` and, optionally, stderr.

    ``log_dir`` falls back to ``$PLOTWEAVER_LOG_DIR`` and then to
    ``~/.plotweaver/logs``. Once configured, further calls are ignored and
    return the current log file unless ``force`` is given.
    """

    global _CONFIGURED, _LOG_PATH
    if _CONFIGURED and _LOG_PATH is not None and not force:
        return _LOG_PATH

    directory = Path(log_dir or os.environ.get("PLOTWEAVER_LOG_DIR") or Path.home() / ".plotweaver" / "logs")
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILENAME

    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    _CONFIGURED, _LOG_PATH = True, log_path
    return log_path


def get_log_path() -> Path | None:
    return _LOG_PATH
