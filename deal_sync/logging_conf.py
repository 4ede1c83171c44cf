"""Structured logging for deal-sync runs.

Every process writes to ``logs/deal_sync.log`` (INFO and up) and
``logs/error.log`` (ERROR and up). Each sync run additionally gets its own
``logs/runs/<run_id>.log`` holding only the events bound to that run, so the
per-deal trail of one run can be read back with ``deal-sync log show <run_id>``.
"""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from threading import Lock
from typing import Iterable

import structlog

APP_LOGGER = "deal_sync"
RUNS_DIRNAME = "runs"
JSON_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

_configured_dir: Path | None = None
_run_handlers: dict[str, logging.Handler] = {}
_lock = Lock()


def log_dir() -> Path:
    env_root = os.environ.get("DEAL_SYNC_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


class RunFilter(logging.Filter):
    """Pass only structlog events carrying the given ``run_id``."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        event = record.msg
        return isinstance(event, dict) and event.get("run_id") == self.run_id


def _logging_dict(directory: Path, verbose: bool) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": "pythonjsonlogger.jsonlogger.JsonFormatter", "fmt": JSON_FORMAT},
        },
        "handlers": {
            # 控制台只保留告警，常规进度交给 rich 输出
            "console": {
                "class": "logging.StreamHandler",
                "level": "DEBUG" if verbose else "WARNING",
                "formatter": "json",
            },
            "app_file": {
                "class": "logging.FileHandler",
                "level": "INFO",
                "filename": str(directory / "deal_sync.log"),
                "formatter": "json",
                "encoding": "utf-8",
            },
            "error_file": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "filename": str(directory / "error.log"),
                "formatter": "json",
                "encoding": "utf-8",
            },
        },
        "loggers": {
            APP_LOGGER: {
                "handlers": ["console", "app_file", "error_file"],
                "level": "DEBUG" if verbose else "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False) -> structlog.BoundLogger:
    """Route structlog through the stdlib handlers and return the app logger.

    Reconfigures when the log directory changed since the last call, e.g.
    after ``DEAL_SYNC_HOME`` was switched.
    """

    global _configured_dir
    directory = log_dir()
    with _lock:
        if _configured_dir != directory:
            (directory / RUNS_DIRNAME).mkdir(parents=True, exist_ok=True)
            for handler in _run_handlers.values():
                handler.close()
            _run_handlers.clear()
            logging.config.dictConfig(_logging_dict(directory, verbose))
            structlog.configure(
                processors=[
                    structlog.contextvars.merge_contextvars,
                    structlog.processors.TimeStamper(fmt="iso"),
                    structlog.stdlib.add_log_level,
                    structlog.processors.StackInfoRenderer(),
                    structlog.processors.format_exc_info,
                    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
                ],
                logger_factory=structlog.stdlib.LoggerFactory(),
                cache_logger_on_first_use=True,
            )
            _configured_dir = directory
    return structlog.get_logger(APP_LOGGER)


def run_log_path(run_id: str) -> Path:
    return log_dir() / RUNS_DIRNAME / f"{run_id}.log"


def run_logger(run_id: str, verbose: bool = False) -> structlog.BoundLogger:
    """Return the app logger bound to ``run_id``, with its own run log file."""

    logger = configure_logging(verbose)
    app_logger = logging.getLogger(APP_LOGGER)
    with _lock:
        if run_id not in _run_handlers:
            handler = logging.FileHandler(run_log_path(run_id), encoding="utf-8")
            handler.setLevel(logging.DEBUG)
            template = next((h for h in app_logger.handlers if h.name == "app_file"), None)
            if template is not None:
                handler.setFormatter(template.formatter)
            handler.addFilter(RunFilter(run_id))
            app_logger.addHandler(handler)
            _run_handlers[run_id] = handler
    return logger.bind(run_id=run_id)


def release_run_log(run_id: str) -> None:
    """Detach and close the run log file of ``run_id``; no-op if unknown."""

    with _lock:
        handler = _run_handlers.pop(run_id, None)
    if handler is not None:
        logging.getLogger(APP_LOGGER).removeHandler(handler)
        handler.close()


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


def available_logs() -> Iterable[Path]:
    """Process logs first, then per-run logs, each sorted by name."""

    directory = log_dir()
    if not directory.exists():
        return []
    process_logs = sorted(directory.glob("*.log"))
    run_logs = sorted((directory / RUNS_DIRNAME).glob("*.log"))
    return process_logs + run_logs


__all__ = [
    "RunFilter",
    "available_logs",
    "configure_logging",
    "log_dir",
    "release_run_log",
    "run_log_path",
    "run_logger",
    "tail_log",
]
