"""
Configuration module for mlpredict.

Provides the RuntimeConfig dataclass for runtime settings and JSON Schema
validation for runtime configuration files.
"""

from mlpredict.config.runtime_config import DEPENDENCY_POLICIES, RuntimeConfig
from mlpredict.config.validator import (
    RUNTIME_CONFIG_SCHEMA,
    ConfigValidationError,
    validate_runtime_config,
)

__all__ = [
    'RuntimeConfig',
    'DEPENDENCY_POLICIES',
    'validate_runtime_config',
    'ConfigValidationError',
    'RUNTIME_CONFIG_SCHEMA',
]
