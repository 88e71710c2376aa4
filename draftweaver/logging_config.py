from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TextIO

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import Processor

from draftweaver.config import AppSettings

LOG_FILE_NAME = "draftweaver.log"
TELEMETRY_LOG_FILE_NAME = "draftweaver-telemetry.log"
ROOT_LOGGER_NAME = "draftweaver"
TELEMETRY_LOGGER_NAME = f"{ROOT_LOGGER_NAME}.telemetry"

_CALLSITE_PARAMETERS = (
    CallsiteParameter.PATHNAME,
    CallsiteParameter.LINENO,
    CallsiteParameter.FUNC_NAME,
)


def configure_application_logging(
    settings: AppSettings,
    *,
    console_level: str | None = None,
    write_files: bool = True,
    console_stream: TextIO | None = None,
) -> Path | None:
    """Route `draftweaver.*` loggers to the console and, optionally, JSON log files.

    Application records go to `draftweaver.log`; telemetry events get their own
    `draftweaver-telemetry.log`. The CLI passes `write_files=False` so that
    one-shot commands do not create a data directory as a side effect.
    Returns the application log path, or None when files are disabled.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    stream = console_stream if console_stream is not None else sys.stderr
    console_handler = logging.StreamHandler(stream=stream)
    console_handler.setLevel(_level_from_name(console_level or settings.log_level))
    console_handler.setFormatter(
        _formatter(structlog.dev.ConsoleRenderer(colors=_is_terminal(stream)))
    )
    root_logger = _exclusive_logger(ROOT_LOGGER_NAME, logging.DEBUG, console_handler)

    if not write_files:
        root_logger.debug(
            "logging configured console_level=%s files=disabled",
            logging.getLevelName(console_handler.level),
        )
        return None

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    telemetry_log_file = settings.log_dir / TELEMETRY_LOG_FILE_NAME
    root_logger.addHandler(_json_file_handler(log_file, logging.DEBUG))
    _exclusive_logger(
        TELEMETRY_LOGGER_NAME,
        logging.INFO,
        _json_file_handler(telemetry_log_file, logging.INFO),
    )

    root_logger.info(
        "logging configured console_level=%s path=%s telemetry_path=%s",
        logging.getLevelName(console_handler.level),
        log_file,
        telemetry_log_file,
    )
    return log_file


def _exclusive_logger(name: str, level: int, handler: logging.Handler) -> logging.Logger:
    # reconfiguring replaces handlers instead of stacking them
    logger = logging.getLogger(name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.setLevel(level)
    logger.propagate = False
    logger.addHandler(handler)
    return logger


def _json_file_handler(path: Path, level: int) -> logging.FileHandler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(
        _formatter(
            structlog.processors.JSONRenderer(sort_keys=True),
            structlog.processors.CallsiteParameterAdder(parameters=_CALLSITE_PARAMETERS),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
        )
    )
    return handler


def _formatter(
    renderer: Processor,
    *extra_processors: Processor,
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        ],
        processors=[
            *extra_processors,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _level_from_name(raw_level: str) -> int:
    level = logging.getLevelName(raw_level.strip().upper())
    return level if isinstance(level, int) else logging.INFO


def _is_terminal(stream: object) -> bool:
    isatty = getattr(stream, "isatty", None)
    if not callable(isatty):
        return False
    try:
        return bool(isatty())
    except ValueError:
        # closed streams raise instead of answering
        return False
