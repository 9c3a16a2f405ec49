"""
Runtime configuration validation using JSON Schema.

Configuration files are YAML or JSON documents whose top-level keys mirror
the fields of :class:`mlpredict.config.RuntimeConfig`.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple, Union

import jsonschema
import yaml


RUNTIME_CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "mlpredict runtime configuration",
    "type": "object",
    "properties": {
        "package_cache_dir": {"type": "string"},
        "fetch_timeout": {"type": "number", "exclusiveMinimum": 0},
        "dependency_policy": {"type": "string", "enum": ["skip", "strict"]},
        "max_workers": {"type": "integer", "minimum": 1},
        "optimize_level": {"type": "integer", "minimum": 0, "maximum": 2},
        "extra_search_paths": {"type": "array", "items": {"type": "string"}},
        "platform_tags": {
            "anyOf": [
                {"type": "null"},
                {"type": "array", "items": {"type": "string"}},
            ]
        },
        "pip_index_url": {"type": ["string", "null"]},
        "wheelhouse": {"type": ["string", "null"]},
    },
    "additionalProperties": False,
}


class ConfigValidationError(ValueError):
    """Raised when a runtime configuration fails validation."""

    def __init__(self, errors: List[str], config_path: Union[str, None] = None):
        self.errors = list(errors)
        self.config_path = config_path
        location = f" in {config_path}" if config_path else ""
        joined = "\n  - ".join(self.errors)
        super().__init__(f"Invalid runtime configuration{location}:\n  - {joined}")


def load_config_document(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML or JSON configuration document.

    Args:
        path: Path to a ``.yaml``, ``.yml`` or ``.json`` file.

    Returns:
        Parsed mapping (empty when the document is empty).

    Raises:
        ConfigValidationError: If the file cannot be read or is not a mapping.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigValidationError([f"Cannot read file: {e}"], str(path)) from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigValidationError([f"Parse error: {e}"], str(path)) from e

    if not isinstance(data, dict):
        raise ConfigValidationError(
            [f"Expected a mapping at top level, got {type(data).__name__}"], str(path)
        )
    return data


def validate_runtime_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate a runtime configuration mapping.

    Args:
        config: Mapping of RuntimeConfig field names to values.

    Returns:
        Tuple of (is_valid, errors).
    """
    validator = jsonschema.Draft7Validator(RUNTIME_CONFIG_SCHEMA)
    errors = []
    for error in sorted(validator.iter_errors(config), key=lambda e: list(e.path)):
        where = ".".join(str(p) for p in error.path) or "<root>"
        errors.append(f"{where}: {error.message}")
    return len(errors) == 0, errors
