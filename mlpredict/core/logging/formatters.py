"""Log formatters for mlpredict.

Console output is ASCII-only so it renders on any terminal or CI log
viewer; file output is either a plain line format or JSON Lines.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict


# Level markers for console output
LEVEL_SYMBOLS = {
    logging.DEBUG: "  .",
    logging.INFO: ">",
    logging.WARNING: "[!]",
    logging.ERROR: "[X]",
    logging.CRITICAL: "[X]",
}

# ANSI colors, only used when the stream is a terminal
LEVEL_COLORS = {
    logging.DEBUG: "\033[2m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;31m",
}
RESET = "\033[0m"


def format_duration(seconds: float) -> str:
    """Format a duration for humans.

    Args:
        seconds: Duration in seconds.

    Returns:
        ``"0.5s"``, ``"2m 5.4s"`` or ``"2h 2m 5s"``.
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        minutes, secs = divmod(seconds, 60)
        return f"{int(minutes)}m {secs:.1f}s"
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours}h {minutes}m {secs}s"


class ConsoleFormatter(logging.Formatter):
    """Human-readable console formatter.

    Prefixes each message with an ASCII level marker; at debug verbosity the
    logger name and current candidate are appended for tracing fallbacks.
    """

    def __init__(self, use_colors: bool = False, show_names: bool = False) -> None:
        super().__init__()
        self.use_colors = use_colors
        self.show_names = show_names

    def format(self, record: logging.LogRecord) -> str:
        symbol = LEVEL_SYMBOLS.get(record.levelno, ">")
        message = record.getMessage()
        line = f"{symbol} {message}"

        if self.show_names:
            origin = record.name
            candidate = getattr(record, "candidate", None)
            if candidate:
                origin = f"{origin}|{candidate}"
            line = f"{line}  ({origin})"

        if record.exc_info and self.show_names:
            line = f"{line}\n{self.formatException(record.exc_info)}"

        if self.use_colors and record.levelno in LEVEL_COLORS:
            line = f"{LEVEL_COLORS[record.levelno]}{line}{RESET}"
        return line


class FileFormatter(logging.Formatter):
    """Plain line formatter for log files, with run id when available."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).isoformat(timespec="milliseconds")
        run_id = getattr(record, "run_id", "-")
        line = (
            f"{timestamp} {record.levelname:<8} [{run_id}] "
            f"{record.name}: {record.getMessage()}"
        )
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    """JSON Lines formatter: one object per record."""

    CONTEXT_FIELDS = ("run_id", "model_dir", "scenario", "candidate")

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)
