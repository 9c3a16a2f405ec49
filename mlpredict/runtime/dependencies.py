"""
Build-dependency resolution for descriptor sources.

A bundle may ship a ``requirements.txt`` listing the packages its descriptor
was built against. The resolver fetches each (package, version) at most once
per process, extracts the best-matching wheel for this interpreter into a
per-(package, version) cache directory, and follows the package's own
``Requires-Dist`` declarations.

Resolution never raises for an unavailable package. Failures are returned
alongside the resolved packages so that the caller decides whether a partial
set is acceptable; some declared packages are only needed at training time
and are never imported by the descriptor.
"""

import zipfile
from collections import deque
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from email.parser import HeaderParser
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from packaging.markers import UndefinedEnvironmentName
from packaging.requirements import InvalidRequirement, Requirement
from packaging.tags import sys_tags
from packaging.utils import InvalidWheelFilename, canonicalize_name, parse_wheel_filename

from mlpredict.core.logging import get_logger
from mlpredict.errors import PackageFetchError
from mlpredict.runtime.cache import KeyedBuildCache
from mlpredict.runtime.fetchers import PackageFetcher, requirement_string, version_matches

logger = get_logger(__name__)

NATIVE_SUFFIXES = (".so", ".pyd", ".dylib", ".dll")
COMPLETE_MARKER = ".mlpredict-complete"


@dataclass(frozen=True)
class DependencySpec:
    """A requested package.

    Attributes:
        package_id: Distribution name as declared.
        version: Exact version, a specifier string, or ``""`` for any version.
    """
    package_id: str
    version: str = ""

    @property
    def key(self) -> Tuple[str, str]:
        """Cache key: canonical name and requested version."""
        return canonicalize_name(self.package_id), self.version

    def __str__(self) -> str:
        return requirement_string(self.package_id, self.version)

    @classmethod
    def from_requirement(cls, requirement: Requirement) -> "DependencySpec":
        specifiers = list(requirement.specifier)
        if len(specifiers) == 1 and specifiers[0].operator in ("==", "===") and "*" not in specifiers[0].version:
            return cls(requirement.name, specifiers[0].version)
        return cls(requirement.name, str(requirement.specifier))


@dataclass(frozen=True)
class ResolvedDependency:
    """An extracted package.

    Attributes:
        package_id: Canonical distribution name.
        version: Concrete version of the extracted wheel.
        root: Extraction directory; an import root.
        binaries: Files surfaced for the compiler, keyed by the compatibility
            tag the wheel was selected for. Always contains ``root``.
        requires: Dependencies declared by the package itself.
    """
    package_id: str
    version: str
    root: Path
    binaries: Dict[str, Tuple[Path, ...]] = field(default_factory=dict)
    requires: Tuple[DependencySpec, ...] = ()


@dataclass(frozen=True)
class DependencyFailure:
    """A package that could not be resolved."""
    package_id: str
    version: str
    reason: str

    def __str__(self) -> str:
        return f"{requirement_string(self.package_id, self.version)}: {self.reason}"


@dataclass
class ResolutionResult:
    """Outcome of :meth:`DependencyResolver.resolve`."""
    resolved: List[ResolvedDependency] = field(default_factory=list)
    failures: List[DependencyFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def __iter__(self) -> Iterator[ResolvedDependency]:
        return iter(self.resolved)

    def __len__(self) -> int:
        return len(self.resolved)

    def binary_paths(self) -> List[Path]:
        """Every surfaced binary path, import roots first, without duplicates."""
        paths: List[Path] = []
        for dep in self.resolved:
            for group in dep.binaries.values():
                for path in group:
                    if path not in paths:
                        paths.append(path)
        return paths


def parse_requirements(path: Union[str, Path]) -> List[DependencySpec]:
    """Read a build-dependency manifest.

    Comments, blank lines and pip option lines (``-r``, ``--index-url``...)
    are ignored. Requirements whose environment marker does not apply to the
    running interpreter are dropped.

    Args:
        path: Path to ``requirements.txt``.

    Returns:
        Declared dependencies in file order.
    """
    specs: List[DependencySpec] = []
    for lineno, raw in enumerate(Path(path).read_text(encoding="utf-8").splitlines(), 1):
        line = raw.split(" #", 1)[0].strip()
        if not line or line.startswith(("#", "-")):
            continue
        try:
            requirement = Requirement(line)
        except InvalidRequirement as e:
            logger.warning(f"{Path(path).name}:{lineno}: ignoring invalid requirement '{line}' ({e})")
            continue
        if requirement.marker is not None and not requirement.marker.evaluate():
            logger.debug(f"{Path(path).name}:{lineno}: marker excludes '{line}'")
            continue
        specs.append(DependencySpec.from_requirement(requirement))
    return specs


def read_requires_dist(root: Path) -> List[DependencySpec]:
    """Read ``Requires-Dist`` entries from an extracted wheel's metadata.

    Requirements restricted to extras or to another environment are skipped.
    """
    specs: List[DependencySpec] = []
    for metadata in root.glob("*.dist-info/METADATA"):
        headers = HeaderParser().parsestr(metadata.read_text(encoding="utf-8", errors="replace"))
        for value in headers.get_all("Requires-Dist") or []:
            try:
                requirement = Requirement(value)
            except InvalidRequirement:
                logger.debug(f"Skipping unparsable Requires-Dist '{value}' in {metadata}")
                continue
            if requirement.marker is not None:
                try:
                    if not requirement.marker.evaluate({"extra": ""}):
                        continue
                except UndefinedEnvironmentName:
                    continue
            specs.append(DependencySpec.from_requirement(requirement))
    return specs


def default_platform_tags() -> List[str]:
    """Compatibility tags of the running interpreter, most specific first."""
    return [str(tag) for tag in sys_tags()]


def select_wheel(
    directory: Path,
    spec: DependencySpec,
    platform_tags: Sequence[str],
) -> Optional[Tuple[Path, str, str]]:
    """Pick the wheel in ``directory`` that best fits this platform.

    The newest matching version wins; among its archives, the one whose best
    tag appears earliest in ``platform_tags`` wins.

    Returns:
        ``(archive, version, tag)`` or None when no archive is compatible.
    """
    rank = {tag: i for i, tag in enumerate(platform_tags)}
    wanted = canonicalize_name(spec.package_id)
    candidates = []
    for archive in sorted(directory.glob("*.whl")):
        try:
            name, version, _, tags = parse_wheel_filename(archive.name)
        except InvalidWheelFilename:
            continue
        if name != wanted or not version_matches(str(version), spec.version):
            continue
        ranked = sorted((rank[str(t)], str(t)) for t in tags if str(t) in rank)
        if not ranked:
            continue
        best_rank, best_tag = ranked[0]
        candidates.append((version, -best_rank, archive, best_tag))
    if not candidates:
        return None
    version, _, archive, tag = max(candidates, key=lambda c: (c[0], c[1]))
    return archive, str(version), tag


def extract_wheel(archive: Path, target: Path) -> Path:
    """Extract a wheel archive into ``target`` unless already extracted.

    Raises:
        PackageFetchError: If the archive is corrupt or escapes ``target``.
    """
    marker = target / COMPLETE_MARKER
    if marker.exists():
        return target
    target.mkdir(parents=True, exist_ok=True)
    resolved_target = target.resolve()
    try:
        with zipfile.ZipFile(archive) as zf:
            for member in zf.namelist():
                destination = (resolved_target / member).resolve()
                if resolved_target not in destination.parents and destination != resolved_target:
                    raise PackageFetchError(f"Archive {archive.name} contains unsafe path '{member}'")
            zf.extractall(resolved_target)
    except zipfile.BadZipFile as e:
        raise PackageFetchError(f"Archive {archive.name} is corrupt: {e}") from e
    marker.write_text(archive.name, encoding="utf-8")
    return target


class DependencyResolver:
    """Fetch, cache and extract build dependencies.

    Attributes:
        fetcher: Package repository client.
        cache_dir: Root directory for extracted packages.
        cache: Process-wide (canonical name, version) -> result cache. Failures
            are cached too, so an unavailable package is never fetched twice.
        fetch_timeout: Seconds allowed for a single fetch.
        platform_tags: Acceptable compatibility tags, most specific first.
    """

    def __init__(
        self,
        fetcher: PackageFetcher,
        cache_dir: Union[str, Path],
        cache: Optional[KeyedBuildCache] = None,
        fetch_timeout: float = 120.0,
        platform_tags: Optional[Sequence[str]] = None,
    ):
        self.fetcher = fetcher
        self.cache_dir = Path(cache_dir)
        self.cache = cache if cache is not None else DEFAULT_DEPENDENCY_CACHE
        self.fetch_timeout = fetch_timeout
        self.platform_tags = list(platform_tags) if platform_tags else default_platform_tags()

    def resolve(self, specs: Iterable[DependencySpec]) -> ResolutionResult:
        """Resolve ``specs`` and everything they transitively require.

        Args:
            specs: Directly declared dependencies.

        Returns:
            ResolutionResult with resolved packages in discovery order and
            the packages that could not be resolved.
        """
        result = ResolutionResult()
        visited = set()
        queue = deque(specs)
        while queue:
            spec = queue.popleft()
            name = canonicalize_name(spec.package_id)
            if name in visited:
                continue
            visited.add(name)

            outcome = self.cache.get_or_build(spec.key, lambda s=spec: self._resolve_one(s))
            if isinstance(outcome, DependencyFailure):
                result.failures.append(outcome)
                continue
            result.resolved.append(outcome)
            queue.extend(outcome.requires)

        logger.debug(
            f"Resolved {len(result.resolved)} package(s), {len(result.failures)} failure(s)"
        )
        return result

    def _resolve_one(self, spec: DependencySpec) -> Union[ResolvedDependency, DependencyFailure]:
        logger.debug(f"Fetching {spec}")
        try:
            directory = self._fetch_with_timeout(spec)
            selected = select_wheel(Path(directory), spec, self.platform_tags)
            if selected is None:
                raise PackageFetchError("no wheel compatible with this interpreter")
            archive, version, tag = selected
            target = self.cache_dir / f"{canonicalize_name(spec.package_id)}-{version}"
            root = extract_wheel(archive, target)
        except PackageFetchError as e:
            return DependencyFailure(spec.package_id, spec.version, str(e))
        except OSError as e:
            return DependencyFailure(spec.package_id, spec.version, f"extraction failed: {e}")

        natives = tuple(sorted(p for p in root.rglob("*") if p.suffix in NATIVE_SUFFIXES and p.is_file()))
        dependency = ResolvedDependency(
            package_id=canonicalize_name(spec.package_id),
            version=version,
            root=root,
            binaries={tag: (root,) + natives},
            requires=tuple(read_requires_dist(root)),
        )
        logger.debug(
            f"Extracted {archive.name} [{tag}] -> {root} "
            f"({len(natives)} native file(s), {len(dependency.requires)} requirement(s))"
        )
        return dependency

    def _fetch_with_timeout(self, spec: DependencySpec) -> Path:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mlpredict-fetch")
        future = executor.submit(self.fetcher.fetch, spec.package_id, spec.version)
        try:
            return future.result(timeout=self.fetch_timeout)
        except FutureTimeoutError as e:
            future.cancel()
            raise PackageFetchError(f"fetch timed out after {self.fetch_timeout}s") from e
        except PackageFetchError:
            raise
        except Exception as e:
            raise PackageFetchError(f"fetch failed: {e}") from e
        finally:
            executor.shutdown(wait=False)


DEFAULT_DEPENDENCY_CACHE: KeyedBuildCache = KeyedBuildCache("dependencies")
