"""Runtime configuration for mlpredict.

Provides a single, typed entry point for the settings that shape how an
artifact bundle is resolved, compiled and executed. The config flows through
ModelRuntime -> DependencyResolver / UnitCompiler and PredictionDispatcher.
"""

from __future__ import annotations

import tempfile
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from mlpredict.config.validator import (
    ConfigValidationError,
    load_config_document,
    validate_runtime_config,
)

DEPENDENCY_POLICIES = ("skip", "strict")


def _default_cache_dir() -> str:
    return str(Path(tempfile.gettempdir()) / "mlpredict-packages")


@dataclass
class RuntimeConfig:
    """Configuration for bundle loading and batch prediction.

    Attributes:
        package_cache_dir: Directory where fetched packages are extracted,
            one subdirectory per (package, version).
        fetch_timeout: Seconds to wait for a single package fetch before
            treating it as failed.
        dependency_policy: ``"skip"`` warns and continues without packages that
            could not be fetched; ``"strict"`` raises.
        max_workers: Upper bound on concurrent per-record model invocations.
        optimize_level: Optimization level passed to :func:`compile`.
            1 strips ``assert`` statements.
        extra_search_paths: Additional import roots made visible to descriptors.
        platform_tags: Wheel compatibility tags in preference order. ``None``
            uses the running interpreter's tags.
        pip_index_url: Package index used by the default fetcher.
        wheelhouse: Local directory of wheels. When set, packages are fetched
            from it instead of the index.
    """

    package_cache_dir: str = field(default_factory=_default_cache_dir)
    fetch_timeout: float = 120.0
    dependency_policy: str = "skip"
    max_workers: int = 4
    optimize_level: int = 1
    extra_search_paths: List[str] = field(default_factory=list)
    platform_tags: Optional[List[str]] = None
    pip_index_url: Optional[str] = None
    wheelhouse: Optional[str] = None

    def __post_init__(self) -> None:
        if self.dependency_policy not in DEPENDENCY_POLICIES:
            raise ValueError(
                f"dependency_policy must be one of {DEPENDENCY_POLICIES}, "
                f"got '{self.dependency_policy}'"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.fetch_timeout <= 0:
            raise ValueError(f"fetch_timeout must be > 0, got {self.fetch_timeout}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RuntimeConfig":
        """Create a RuntimeConfig from a mapping, validating it first.

        Raises:
            ConfigValidationError: If the mapping has unknown keys or bad values.
        """
        is_valid, errors = validate_runtime_config(data)
        if not is_valid:
            raise ConfigValidationError(errors)
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RuntimeConfig":
        """Load a RuntimeConfig from a YAML (or JSON) file."""
        data = load_config_document(path)
        is_valid, errors = validate_runtime_config(data)
        if not is_valid:
            raise ConfigValidationError(errors, str(path))
        return cls(**data)

    def with_overrides(self, **overrides: Any) -> "RuntimeConfig":
        """Return a copy with the given fields replaced. ``None`` values are ignored."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown RuntimeConfig fields: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
