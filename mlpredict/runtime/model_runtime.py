"""
Model runtime: load an artifact directory into a ready-to-dispatch entry.

Loading discovers the bundle files, parses the manifest, resolves build
dependencies, compiles the descriptor and computes the entry-symbol
candidates. The result is memoized per canonical directory path in an
injected cache; the default cache lives for the whole process and is never
invalidated.
"""

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple, Union

from mlpredict.config import RuntimeConfig
from mlpredict.core.logging import get_logger
from mlpredict.errors import DependencyFetchWarning, DependencyResolutionError
from mlpredict.runtime.bundle import ArtifactBundle
from mlpredict.runtime.cache import KeyedBuildCache
from mlpredict.runtime.compiler import CompiledUnit, UnitCompiler
from mlpredict.runtime.dependencies import (
    DependencyResolver,
    ResolutionResult,
    parse_requirements,
)
from mlpredict.runtime.entry_symbol import EntrySymbolResolver, ResolutionHints
from mlpredict.runtime.fetchers import PackageFetcher, PipDownloadFetcher, WheelhouseFetcher
from mlpredict.runtime.manifest import ScenarioManifest, read_manifest

logger = get_logger(__name__)


@dataclass(frozen=True)
class RuntimeCacheEntry:
    """A loaded artifact directory.

    Attributes:
        bundle: Discovered bundle files.
        manifest: Parsed manifest. Only ``resolved_entry_symbol`` changes later.
        unit: Compiled descriptor.
        weights_path: Weights blob bound onto the entry symbol before prediction.
        candidates: Entry-symbol candidates, most likely first.
        dependencies: Outcome of build-dependency resolution.
    """
    bundle: ArtifactBundle
    manifest: ScenarioManifest = field(compare=False)
    unit: CompiledUnit = field(compare=False)
    weights_path: Path = None
    candidates: Tuple[str, ...] = ()
    dependencies: ResolutionResult = field(default_factory=ResolutionResult, compare=False)


DEFAULT_RUNTIME_CACHE: KeyedBuildCache = KeyedBuildCache("runtimes")


def default_fetcher(config: RuntimeConfig) -> PackageFetcher:
    """Build the fetcher described by ``config``."""
    if config.wheelhouse:
        return WheelhouseFetcher(config.wheelhouse)
    return PipDownloadFetcher(
        Path(config.package_cache_dir) / "downloads",
        index_url=config.pip_index_url,
        timeout=config.fetch_timeout,
    )


class ModelRuntime:
    """Load artifact directories, once per directory per cache.

    Example:
        >>> runtime = ModelRuntime()
        >>> entry = runtime.load("models/HousePrice")
        >>> entry.manifest.scenario
        'regression'
        >>> runtime.load("models/HousePrice") is entry
        True
    """

    def __init__(
        self,
        config: Optional[RuntimeConfig] = None,
        fetcher: Optional[PackageFetcher] = None,
        cache: Optional[KeyedBuildCache] = None,
        dependency_cache: Optional[KeyedBuildCache] = None,
        compiler: Optional[UnitCompiler] = None,
        entry_resolver: Optional[EntrySymbolResolver] = None,
    ):
        """Initialize the runtime.

        Args:
            config: Runtime settings; defaults when None.
            fetcher: Package repository client; derived from ``config`` when None.
            cache: Directory -> RuntimeCacheEntry cache; process-wide when None.
            dependency_cache: (package, version) cache; process-wide when None.
            compiler: Descriptor compiler; derived from ``config`` when None.
            entry_resolver: Candidate rules; the default rule order when None.
        """
        self.config = config or RuntimeConfig()
        self.cache = cache if cache is not None else DEFAULT_RUNTIME_CACHE
        self.resolver = DependencyResolver(
            fetcher if fetcher is not None else default_fetcher(self.config),
            cache_dir=self.config.package_cache_dir,
            cache=dependency_cache,
            fetch_timeout=self.config.fetch_timeout,
            platform_tags=self.config.platform_tags,
        )
        self.compiler = compiler or UnitCompiler(
            optimize=self.config.optimize_level,
            extra_search_paths=self.config.extra_search_paths,
        )
        self.entry_resolver = entry_resolver or EntrySymbolResolver()

    def load(self, directory: Union[str, Path]) -> RuntimeCacheEntry:
        """Load an artifact directory, returning the cached entry on repeat calls.

        Args:
            directory: Artifact directory. Relative paths and symlinks are
                canonicalized before the cache lookup.

        Returns:
            RuntimeCacheEntry

        Raises:
            ArtifactError: Missing or ambiguous bundle files.
            ManifestError: Unreadable or malformed manifest.
            DependencyResolutionError: A dependency is unavailable under the
                strict policy.
            CompilationError: The descriptor does not compile or load.
        """
        key = Path(directory).expanduser().resolve()
        return self.cache.get_or_build(key, lambda: self._build(key))

    def _build(self, directory: Path) -> RuntimeCacheEntry:
        logger.info(f"Loading model from {directory}")
        bundle = ArtifactBundle.discover(directory)
        manifest = read_manifest(bundle.manifest_path, entry_symbol_hint=bundle.descriptor_stem)
        dependencies = self.resolve_dependencies(bundle)
        unit = self.compiler.compile(
            bundle.read_descriptor(),
            dependencies.binary_paths(),
            filename=str(bundle.descriptor_path),
        )
        candidates = self.entry_resolver.resolve(
            unit,
            ResolutionHints(declared_name=manifest.entry_symbol_hint, folder_name=bundle.name),
        )
        logger.info(
            f"Loaded '{bundle.name}' ({manifest.scenario}): "
            f"{len(unit.types)} type(s), {len(dependencies)} dependency package(s)"
        )
        return RuntimeCacheEntry(
            bundle=bundle,
            manifest=manifest,
            unit=unit,
            weights_path=bundle.weights_path,
            candidates=tuple(candidates),
            dependencies=dependencies,
        )

    def resolve_dependencies(self, bundle: ArtifactBundle) -> ResolutionResult:
        """Resolve the bundle's build dependencies and apply the dependency policy.

        Under the ``"skip"`` policy each unavailable package produces a
        :class:`DependencyFetchWarning`; under ``"strict"`` the first failure
        aborts the load.
        """
        if bundle.requirements_path is None:
            return ResolutionResult()

        specs = parse_requirements(bundle.requirements_path)
        logger.debug(f"Declared dependencies: {[str(s) for s in specs]}")
        result = self.resolver.resolve(specs)

        if result.failures and self.config.dependency_policy == "strict":
            raise DependencyResolutionError(result.failures)
        for failure in result.failures:
            warnings.warn(f"Skipping dependency {failure}", DependencyFetchWarning, stacklevel=2)
        return result
