"""Logging system for mlpredict.

Structured, configurable logging used by every mlpredict module. It supports:

- Human-readable console output with ASCII level markers
- Plain or JSON Lines file logging for automation
- Run context tracking (run id, artifact directory, scenario)

Usage:
    >>> from mlpredict.core.logging import get_logger, configure_logging, LogContext
    >>>
    >>> # Configure at application startup
    >>> configure_logging(verbose=1)
    >>>
    >>> # Get logger in each module
    >>> logger = get_logger(__name__)
    >>>
    >>> with LogContext(model_dir="models/Churn", scenario="classification"):
    ...     logger.info("Running batch prediction")

See Also:
    - :mod:`mlpredict.core.logging.config` for configuration details
    - :mod:`mlpredict.core.logging.context` for context management
    - :mod:`mlpredict.core.logging.formatters` for output formatting
"""

from .config import (
    ROOT_LOGGER_NAME,
    LoggingConfig,
    configure_logging,
    get_config,
    get_logger,
    is_configured,
    reset_logging,
    verbosity_to_level,
)
from .context import (
    ContextFilter,
    LogContext,
    RunState,
    get_current_state,
    get_run_id,
)
from .formatters import (
    ConsoleFormatter,
    FileFormatter,
    JsonFormatter,
    format_duration,
)

__all__ = [
    # Main API
    "get_logger",
    "configure_logging",
    "LogContext",
    # Configuration
    "ROOT_LOGGER_NAME",
    "LoggingConfig",
    "get_config",
    "is_configured",
    "reset_logging",
    "verbosity_to_level",
    # Context
    "ContextFilter",
    "RunState",
    "get_current_state",
    "get_run_id",
    # Formatters
    "ConsoleFormatter",
    "FileFormatter",
    "JsonFormatter",
    "format_duration",
]
