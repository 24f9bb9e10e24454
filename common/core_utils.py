#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core utility functions for the project.

This module provides the logging setup shared by the installer and the
health check: a symbol-aware formatter that colours each line by level when
writing to a terminal.
"""

import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from canvas_setup.config_models import SYMBOLS_DEFAULT

module_logger = logging.getLogger(__name__)

DETAILED_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"
SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
SIMPLE_LOG_FORMAT_NO_PREFIX = (
    "%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
)

ANSI_RESET = "\033[0m"
LEVEL_COLOURS: Dict[int, str] = {
    logging.DEBUG: "",
    logging.INFO: "\033[0;32m",
    logging.WARNING: "\033[1;33m",
    logging.ERROR: "\033[0;31m",
    logging.CRITICAL: "\033[1;31m",
}


def colourise(text: str, levelno: int) -> str:
    """Wrap text in the ANSI colour used for levelno."""
    colour = LEVEL_COLOURS.get(levelno, "")
    return f"{colour}{text}{ANSI_RESET}" if colour else text


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log
    level and optionally colours the whole line.
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        validate=True,
        symbols=None,
        use_colour=False,
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT
        self.use_colour = use_colour

    def format(self, record):
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        formatted = super().format(record)
        if self.use_colour:
            return colourise(formatted, record.levelno)
        return formatted


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format_str: Optional[str] = None,
    log_prefix: Optional[str] = None,
    symbols: Optional[Dict[str, str]] = None,
) -> None:
    """
    Configures logging for the installer.

    Console output is coloured when stdout is a terminal; the optional log
    file never is.

    Parameters:
    log_level: int
        The logging level to configure. Defaults to logging.INFO.
    log_file: Optional[str]
        File to append log records to, in addition to the console.
    log_to_console: bool
        Whether to log to the console (stdout). Defaults to True.
    log_format_str: Optional[str]
        A custom log format string. May contain a `{log_prefix}` placeholder.
    log_prefix: Optional[str]
        An optional string to prefix log messages with.
    symbols: Optional[Dict[str, str]]
        Level symbols; defaults to SYMBOLS_DEFAULT.
    """
    handlers: List[logging.Handler] = []
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            handlers.append(file_handler)
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        handlers.append(console_handler)

    if not handlers:  # pragma: no cover
        handlers.append(logging.StreamHandler(sys.stdout))
        if log_level > logging.INFO:
            log_level = logging.INFO

    final_format_str: str
    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )

    if log_format_str:
        if "{log_prefix}" in log_format_str:
            final_format_str = log_format_str.format(log_prefix=actual_prefix)
        else:
            final_format_str = actual_prefix + log_format_str
    else:
        if actual_prefix:
            final_format_str = (
                SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
                    log_prefix=actual_prefix
                )
            )
        else:
            final_format_str = SIMPLE_LOG_FORMAT_NO_PREFIX

    stdout_is_tty = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    for handler in handlers:
        is_console = not isinstance(handler, logging.FileHandler)
        handler.setFormatter(
            SymbolFormatter(
                fmt=final_format_str,
                datefmt="%Y-%m-%d %H:%M:%S",
                symbols=symbols,
                use_colour=is_console and stdout_is_tty,
            )
        )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. Format: '{final_format_str}'"
    )


def log_level_from_name(level_name: Optional[str]) -> int:
    """Translate a LOGLEVEL string to a logging level, defaulting to INFO."""
    level = getattr(logging, (level_name or "INFO").upper(), None)
    if not isinstance(level, int):
        print(
            f"Warning: Invalid LOGLEVEL string '{level_name}'. Defaulting to INFO.",
            file=sys.stderr,
        )
        return logging.INFO
    return level
