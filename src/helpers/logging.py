"""Logger module."""

import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from typing import Any

import colorlog

loggers: dict[str, logging.Logger] = {}
error_file_handlers: dict[str, logging.Handler] = {}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _default_log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").strip().upper()


def _default_log_color() -> bool:
    return os.getenv("LOG_COLOR", "").strip().lower() in {"1", "true", "yes"}


def _default_log_dir() -> str:
    return os.getenv("LOG_DIR", "").strip()


def _error_file_handler(log_dir: str) -> logging.Handler:
    """Hourly rotating ERROR log, one per directory shared by every logger."""
    if log_dir not in error_file_handlers:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        handler = TimedRotatingFileHandler(path / "error.log", when="H", encoding="utf-8")
        handler.setLevel(logging.ERROR)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        error_file_handlers[log_dir] = handler
    return error_file_handlers[log_dir]


def get_logger(
    name: str,
    log_handler: str = "stdout",
    log_level: str | None = None,
    log_color: bool | None = None,
    log_dir: str | None = None,
) -> logging.Logger:
    """Get logger.

    Args:
        name: The name of the logger.
        log_handler: The log handler type ('stdout').
        log_level: The logging level ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL').
            Defaults to the LOG_LEVEL environment variable, then INFO.
        log_color: Whether to use colored output. Defaults to LOG_COLOR.
        log_dir: Directory for an hourly rotating ERROR log. Defaults to LOG_DIR;
            empty disables the file.

    Returns:
        logging.Logger: Configured logger instance.

    Raises:
        ValueError: If invalid handler or log level is provided.
    """
    if name in loggers:
        return loggers[name]

    if log_level is None:
        log_level = _default_log_level()
    if log_color is None:
        log_color = _default_log_color()

    logger = logging.getLogger(name) if not log_color else colorlog.getLogger(name)

    if log_handler == "stdout" and not log_color:
        handler = logging.StreamHandler(sys.stdout)
    elif log_handler == "stdout" and log_color:
        handler = colorlog.StreamHandler(sys.stdout)
    else:
        err_msg = f"Invalid handler: {log_handler}"
        raise ValueError(err_msg)

    log_levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }

    if log_level not in log_levels:
        err_msg = f"Invalid log level: {log_level}"
        raise ValueError(err_msg)

    level = log_levels[log_level]

    logger.setLevel(level)
    handler.setLevel(level)

    if not log_color:
        formatter = logging.Formatter(LOG_FORMAT)
    else:
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s %(asctime)s - %(name)s - %(levelname)s - %(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if log_dir is None:
        log_dir = _default_log_dir()
    if log_dir:
        logger.addHandler(_error_file_handler(log_dir))

    loggers[name] = logger
    return logger


class ChainLoggerAdapter(logging.LoggerAdapter):
    """Prefix every record with the chain it belongs to."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = self.extra or {}
        return f"[{extra.get('chain')}] {msg}", kwargs


def chain_logger(
    logger: logging.Logger | logging.LoggerAdapter, chain: str
) -> ChainLoggerAdapter:
    """Wrap a logger so its messages carry chain context.

    Args:
        logger: Base logger (or adapter) to wrap.
        chain: Chain label, usually the currency id or its configured name.

    Returns:
        ChainLoggerAdapter: Adapter that prefixes messages with ``[chain]``.

    Example:
        ```python
        log = chain_logger(get_logger(__name__), "iJhCezBExJHvtyH3fGhNnt2NhU4Ztkf2yq")
        log.info("Stored cashback for %s", name)
        ```
    """
    if isinstance(logger, logging.LoggerAdapter):
        logger = logger.logger
    return ChainLoggerAdapter(logger, {"chain": chain})


__all__ = [
    "ChainLoggerAdapter",
    "chain_logger",
    "get_logger",
]
