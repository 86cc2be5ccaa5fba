import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

SYNC_LOGGER = "planner.sync"

_DETAILED_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
_MB = 1024 * 1024


def _rotating_handler(
    path: Path, level: int, max_mb: int, backups: int, fmt: str = _DETAILED_FORMAT
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * _MB, backupCount=backups
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = True,
    logs_dir: Optional[Path] = None,
) -> None:
    """Set up logging configuration for the application.

    Files written under *logs_dir* when ``log_to_file`` is on:

    - ``app.log``: everything at INFO and above
    - ``sync.log``: the ``planner.sync`` tree (mutations, rollbacks, flushes) at DEBUG
    - ``errors.log``: ERROR and above, with tracebacks

    Args:
        log_level: Console and root level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
        logs_dir: Directory for rotating log files (defaults to ./logs)
    """
    logs_dir = logs_dir or Path("logs")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer() if log_to_file else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper())

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    sync_logger = logging.getLogger(SYNC_LOGGER)
    sync_logger.handlers.clear()
    sync_logger.setLevel(logging.NOTSET)

    if not log_to_file:
        return

    logs_dir.mkdir(parents=True, exist_ok=True)
    root_logger.addHandler(_rotating_handler(logs_dir / "app.log", logging.INFO, 10, 5))
    root_logger.addHandler(
        _rotating_handler(
            logs_dir / "errors.log", logging.ERROR, 5, 10, _DETAILED_FORMAT + " - %(exc_info)s"
        )
    )
    # Root handlers keep their own levels; only sync.log sees DEBUG
    sync_logger.setLevel(logging.DEBUG)
    sync_logger.addHandler(
        _rotating_handler(
            logs_dir / "sync.log",
            logging.DEBUG,
            10,
            10,
            "%(asctime)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s",
        )
    )


def get_sync_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the client sync core.

    Args:
        name: Logger name (defaults to ``planner.sync``)
    """
    return structlog.get_logger(name or SYNC_LOGGER)


class RequestContext:
    """Request-scoped logging context backed by structlog contextvars."""

    @staticmethod
    def set(**values: Any) -> None:
        structlog.contextvars.bind_contextvars(**values)

    @staticmethod
    def get() -> Dict[str, Any]:
        return structlog.contextvars.get_contextvars()

    @staticmethod
    def clear() -> None:
        structlog.contextvars.clear_contextvars()
