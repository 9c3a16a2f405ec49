"""Run context management for mlpredict logging.

This module provides a context manager that tracks the current run (its id,
the artifact directory being served and the scenario being dispatched) and
a logging filter that copies that state onto every log record.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class RunState:
    """State for a single prediction run.

    Attributes:
        run_id: Unique run identifier.
        model_dir: Artifact directory being served.
        scenario: Scenario tag currently being dispatched.
        candidate: Entry-symbol candidate currently being tried.
        start_time: Run start timestamp.
        extra: Additional run-level metadata.
    """

    run_id: str
    model_dir: str | None = None
    scenario: str | None = None
    candidate: str | None = None
    start_time: datetime = field(default_factory=datetime.now)
    extra: dict[str, Any] = field(default_factory=dict)


class _ContextStorage(threading.local):
    """Thread-local storage for run context."""

    def __init__(self) -> None:
        super().__init__()
        self.run_state: RunState | None = None

# Global context storage
_context = _ContextStorage()

def get_current_state() -> RunState | None:
    """Get the current run state.

    Returns:
        Current RunState or None if not in a run context.
    """
    return _context.run_state

def get_run_id() -> str | None:
    """Get the current run ID, or None outside a run context."""
    state = get_current_state()
    return state.run_id if state else None

def _generate_run_id() -> str:
    """Generate a unique run ID in format "P-YYYYMMDD-HHMMSS-XXXX"."""
    now = datetime.now()
    timestamp = now.strftime("%Y%m%d-%H%M%S")
    suffix = uuid.uuid4().hex[:4]
    return f"P-{timestamp}-{suffix}"


class LogContext:
    """Context manager for run-level logging context.

    Example:
        >>> with LogContext(model_dir="models/Churn"):
        ...     logger.info("Loading bundle")
        ...     with LogContext.candidate("ChurnModel"):
        ...         logger.debug("Introspecting")
    """

    def __init__(
        self,
        run_id: str | None = None,
        model_dir: str | None = None,
        scenario: str | None = None,
        **extra: Any,
    ) -> None:
        """Initialize log context.

        Args:
            run_id: Unique run identifier (auto-generated if not provided).
            model_dir: Artifact directory being served.
            scenario: Scenario tag, when already known.
            **extra: Additional run-level metadata.
        """
        self.run_id = run_id or _generate_run_id()
        self.model_dir = model_dir
        self.scenario = scenario
        self.extra = extra
        self._previous_state: RunState | None = None

    def __enter__(self) -> LogContext:
        self._previous_state = _context.run_state
        _context.run_state = RunState(
            run_id=self.run_id,
            model_dir=self.model_dir,
            scenario=self.scenario,
            start_time=datetime.now(),
            extra=self.extra,
        )
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        _context.run_state = self._previous_state

    @staticmethod
    @contextmanager
    def scenario_of(scenario: str) -> Generator[None, None, None]:
        """Track the scenario being dispatched within the current run."""
        state = get_current_state()
        if state is None:
            yield
            return

        previous = state.scenario
        state.scenario = scenario
        try:
            yield
        finally:
            state.scenario = previous

    @staticmethod
    @contextmanager
    def candidate(name: str) -> Generator[None, None, None]:
        """Track the entry-symbol candidate being tried within the current run."""
        state = get_current_state()
        if state is None:
            yield
            return

        previous = state.candidate
        state.candidate = name
        try:
            yield
        finally:
            state.candidate = previous


def inject_context(record: logging.LogRecord) -> logging.LogRecord:
    """Copy the current run context onto a log record.

    Args:
        record: Log record to inject context into.

    Returns:
        The same record, with ``run_id``, ``model_dir``, ``scenario`` and
        ``candidate`` attributes set when a run context is active.
    """
    state = get_current_state()

    if state is None:
        return record

    record.run_id = state.run_id
    if state.model_dir:
        record.model_dir = state.model_dir
    if state.scenario:
        record.scenario = state.scenario
    if state.candidate:
        record.candidate = state.candidate

    return record


class ContextFilter(logging.Filter):
    """Logging filter that injects the current run context into records."""

    def filter(self, record: logging.LogRecord) -> bool:
        inject_context(record)
        return True
