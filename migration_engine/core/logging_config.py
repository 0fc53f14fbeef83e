"""
Application-wide logging configuration helpers.

All modules log through ``logging.getLogger(__name__)``; this module sets
up the single stdout handler they share. Background migration tasks run
inside ``job_log_context`` so every line they emit carries the job id.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.config import dictConfig
from typing import Iterator, Optional


_is_configured = False

_current_job_id: ContextVar[Optional[str]] = ContextVar("migration_job_id", default=None)

# Libraries that are chatty at INFO/DEBUG and rarely useful when tracing a job.
QUIET_LOGGERS = ("multipart", "sqlalchemy.engine", "urllib3")


class JobContextFilter(logging.Filter):
    """Stamp ``record.job_id`` with the job currently being processed ("-" outside a job)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_id = _current_job_id.get() or "-"
        return True


@contextmanager
def job_log_context(job_id: str) -> Iterator[None]:
    token = _current_job_id.set(job_id)
    try:
        yield
    finally:
        _current_job_id.reset(token)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root and ``migration_engine`` loggers once per process.

    Args:
        level: Optional log level override (e.g., "DEBUG", "INFO").
    """
    global _is_configured

    if _is_configured:
        return

    log_level = (level or "INFO").upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "job_context": {"()": JobContextFilter},
            },
            "formatters": {
                "standard": {
                    "format": "%(asctime)s | %(levelname)-7s | %(name)s | job=%(job_id)s | %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                    "filters": ["job_context"],
                    "level": log_level,
                }
            },
            "root": {
                "handlers": ["console"],
                "level": log_level,
            },
        }
    )

    logging.getLogger("migration_engine").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _is_configured = True
