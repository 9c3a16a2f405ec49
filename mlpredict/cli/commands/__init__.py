"""CLI subcommands."""

from .preprocess import add_preprocess_command
from .run import add_run_command

__all__ = ["add_run_command", "add_preprocess_command"]
