"""Logging setup: structlog events rendered by stdlib logging on stderr.

Library modules only ever call ``structlog.get_logger("git_provenance.<area>")``;
nothing is printed until an application calls :func:`setup_logging`.
"""

from __future__ import annotations

import logging.config

import structlog

from git_provenance.core.config import Settings, load_settings

PACKAGE_LOGGER = "git_provenance"
LOG_FORMATS = ("console", "json")


def _pre_chain() -> list[structlog.types.Processor]:
    # Shared by structlog events and plain stdlib records (e.g. from asyncio).
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]


def _renderer(fmt: str) -> structlog.types.Processor:
    if fmt == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=False)
    raise ValueError(f"unknown log format {fmt!r}, expected one of {LOG_FORMATS}")


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    *,
    settings: Settings | None = None,
) -> None:
    """Configure structlog and the ``git_provenance`` stdlib logger.

    *level* and *fmt* override ``settings.log_level`` and ``settings.log_format``
    (``GIT_PROVENANCE_LOG_LEVEL`` / ``GIT_PROVENANCE_LOG_FORMAT``). Only the
    package logger follows *level*; the root logger stays at WARNING so other
    libraries in the host process keep their own verbosity.
    """
    settings = settings or load_settings()
    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()
    renderer = _renderer(fmt)
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                fmt: {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": fmt,
                },
            },
            "root": {"handlers": ["stderr"], "level": "WARNING"},
            "loggers": {PACKAGE_LOGGER: {"level": level}},
        }
    )
