"""
Runtime: turn an artifact directory into a compiled, introspectable unit.

Components, leaves first:
    - ArtifactBundle: file discovery
    - read_manifest / ScenarioManifest: manifest parsing
    - DependencyResolver: fetch, cache and extract build dependencies
    - UnitCompiler: in-memory compilation of the descriptor
    - EntrySymbolResolver: ordered entry-symbol candidates
    - ModelRuntime: orchestration and per-directory caching
"""

from .bundle import ArtifactBundle
from .cache import KeyedBuildCache
from .compiler import CompiledUnit, Diagnostic, TypeDescriptor, UnitCompiler
from .dependencies import (
    DEFAULT_DEPENDENCY_CACHE,
    DependencyFailure,
    DependencyResolver,
    DependencySpec,
    ResolutionResult,
    ResolvedDependency,
    parse_requirements,
)
from .entry_symbol import EntrySymbolResolver, ResolutionHints
from .fetchers import PackageFetcher, PipDownloadFetcher, WheelhouseFetcher
from .manifest import CANONICAL_SCENARIOS, ScenarioManifest, normalize_scenario, read_manifest
from .model_runtime import DEFAULT_RUNTIME_CACHE, ModelRuntime, RuntimeCacheEntry

__all__ = [
    "ArtifactBundle",
    "KeyedBuildCache",
    "CompiledUnit",
    "Diagnostic",
    "TypeDescriptor",
    "UnitCompiler",
    "DEFAULT_DEPENDENCY_CACHE",
    "DependencyFailure",
    "DependencyResolver",
    "DependencySpec",
    "ResolutionResult",
    "ResolvedDependency",
    "parse_requirements",
    "EntrySymbolResolver",
    "ResolutionHints",
    "PackageFetcher",
    "PipDownloadFetcher",
    "WheelhouseFetcher",
    "CANONICAL_SCENARIOS",
    "ScenarioManifest",
    "normalize_scenario",
    "read_manifest",
    "DEFAULT_RUNTIME_CACHE",
    "ModelRuntime",
    "RuntimeCacheEntry",
]
