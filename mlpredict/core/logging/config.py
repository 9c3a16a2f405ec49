"""Logging configuration for mlpredict.

All mlpredict loggers live under the ``mlpredict`` namespace. The library
itself only installs a :class:`logging.NullHandler`; applications (and the
CLI) call :func:`configure_logging` once at startup.
"""

from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from .context import ContextFilter
from .formatters import ConsoleFormatter, FileFormatter, JsonFormatter

ROOT_LOGGER_NAME = "mlpredict"

logging.getLogger(ROOT_LOGGER_NAME).addHandler(logging.NullHandler())


@dataclass
class LoggingConfig:
    """Active logging configuration.

    Attributes:
        verbose: 0 = warnings and errors, 1 = info, 2 = debug.
        log_file: Optional path of a log file.
        json_output: Write the log file as JSON Lines.
        use_colors: Colorize console output.
        capture_warnings: Route :mod:`warnings` through logging.
    """

    verbose: int = 1
    log_file: str | None = None
    json_output: bool = False
    use_colors: bool = False
    capture_warnings: bool = True


_lock = threading.Lock()
_config: LoggingConfig | None = None
_handlers: list[logging.Handler] = []


def verbosity_to_level(verbose: int) -> int:
    """Map a CLI verbosity count to a logging level."""
    if verbose <= 0:
        return logging.WARNING
    if verbose == 1:
        return logging.INFO
    return logging.DEBUG


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the mlpredict namespace.

    Args:
        name: Usually ``__name__``. Names outside the namespace are nested under it.

    Returns:
        The logger.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def configure_logging(
    verbose: int = 1,
    log_file: str | Path | None = None,
    json_output: bool = False,
    use_colors: bool | None = None,
    capture_warnings: bool = True,
    stream: TextIO | None = None,
) -> LoggingConfig:
    """Configure mlpredict logging.

    Replaces any handlers installed by a previous call.

    Args:
        verbose: 0 = warnings and errors, 1 = info, 2 = debug.
        log_file: Also write records to this file (always at debug level).
        json_output: Write the log file as JSON Lines instead of plain lines.
        use_colors: Colorize console output. Defaults to whether the stream is a TTY.
        capture_warnings: Route warnings such as skipped dependencies through logging.
        stream: Console stream, ``sys.stderr`` by default.

    Returns:
        The active LoggingConfig.
    """
    global _config

    with _lock:
        _remove_handlers()

        stream = stream if stream is not None else sys.stderr
        if use_colors is None:
            use_colors = bool(getattr(stream, "isatty", lambda: False)())

        level = verbosity_to_level(verbose)
        context_filter = ContextFilter()

        console = logging.StreamHandler(stream)
        console.setLevel(level)
        console.setFormatter(ConsoleFormatter(use_colors=use_colors, show_names=verbose >= 2))
        console.addFilter(context_filter)
        _handlers.append(console)

        if log_file is not None:
            path = Path(log_file)
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(path, mode="a", encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(JsonFormatter() if json_output else FileFormatter())
            file_handler.addFilter(context_filter)
            _handlers.append(file_handler)

        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(logging.DEBUG if log_file is not None else level)
        root.propagate = False
        for handler in _handlers:
            root.addHandler(handler)

        if capture_warnings:
            logging.captureWarnings(True)
            warnings_logger = logging.getLogger("py.warnings")
            for handler in _handlers:
                warnings_logger.addHandler(handler)

        _config = LoggingConfig(
            verbose=verbose,
            log_file=str(log_file) if log_file is not None else None,
            json_output=json_output,
            use_colors=use_colors,
            capture_warnings=capture_warnings,
        )
        return _config


def _remove_handlers() -> None:
    root = logging.getLogger(ROOT_LOGGER_NAME)
    warnings_logger = logging.getLogger("py.warnings")
    for handler in _handlers:
        root.removeHandler(handler)
        warnings_logger.removeHandler(handler)
        handler.close()
    _handlers.clear()


def reset_logging() -> None:
    """Undo :func:`configure_logging`, restoring library defaults."""
    global _config

    with _lock:
        if _config is not None and _config.capture_warnings:
            logging.captureWarnings(False)
        _remove_handlers()
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(logging.NOTSET)
        root.propagate = True
        _config = None


def get_config() -> LoggingConfig | None:
    """Return the active LoggingConfig, or None if logging is not configured."""
    return _config


def is_configured() -> bool:
    return _config is not None
