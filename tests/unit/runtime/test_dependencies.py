"""Tests for build-dependency resolution."""

import threading
import time
from pathlib import Path

import pytest

from mlpredict.errors import PackageFetchError
from mlpredict.runtime.cache import KeyedBuildCache
from mlpredict.runtime.dependencies import (
    DependencyFailure,
    DependencyResolver,
    DependencySpec,
    parse_requirements,
    read_requires_dist,
    select_wheel,
)
from mlpredict.runtime.fetchers import WheelhouseFetcher, requirement_string, version_matches

PLATFORM_TAGS = ["cp311-cp311-manylinux_2_17_x86_64", "cp311-abi3-manylinux_2_17_x86_64", "py3-none-any"]


class CountingFetcher:
    """Fake transport serving wheels from a directory and counting calls."""

    def __init__(self, root, delay=0.0, missing=()):
        self.root = Path(root)
        self.calls = []
        self.delay = delay
        self.missing = set(missing)
        self._lock = threading.Lock()

    def fetch(self, package_id, version):
        with self._lock:
            self.calls.append((package_id, version))
        if self.delay:
            time.sleep(self.delay)
        if package_id in self.missing:
            raise PackageFetchError(f"{package_id} not found")
        return self.root


@pytest.fixture
def wheelhouse(tmp_path, build_wheel):
    root = tmp_path / "wheelhouse"
    build_wheel(root, "alpha", "1.0", requires=["beta>=2.0"])
    build_wheel(root, "beta", "2.1", requires=["alpha", 'gamma; extra == "docs"'])
    build_wheel(root, "gamma", "0.1")
    return root


@pytest.fixture
def make_resolver(tmp_path):
    def make(fetcher, cache=None, **kwargs):
        return DependencyResolver(
            fetcher,
            cache_dir=tmp_path / "extracted",
            cache=cache if cache is not None else KeyedBuildCache("deps"),
            platform_tags=PLATFORM_TAGS,
            **kwargs,
        )
    return make


class TestParseRequirements:
    """Tests for reading requirements.txt."""

    def test_pinned_and_ranges(self, tmp_path):
        path = tmp_path / "requirements.txt"
        path.write_text(
            "# build deps\n"
            "numpy==1.26.4\n"
            "\n"
            "pandas>=2.0  # data frames\n"
            "-r other.txt\n"
            "--index-url https://example.invalid/simple\n"
            "scipy\n"
        )

        specs = parse_requirements(path)

        assert specs == [
            DependencySpec("numpy", "1.26.4"),
            DependencySpec("pandas", ">=2.0"),
            DependencySpec("scipy", ""),
        ]

    def test_markers_evaluated(self, tmp_path):
        """Test that requirements for other environments are dropped."""
        path = tmp_path / "requirements.txt"
        path.write_text('pywin32==306; sys_platform == "nonexistent"\nsix==1.16.0\n')

        assert parse_requirements(path) == [DependencySpec("six", "1.16.0")]

    def test_invalid_line_skipped(self, tmp_path):
        path = tmp_path / "requirements.txt"
        path.write_text("not a valid requirement!!\nsix==1.16.0\n")

        assert parse_requirements(path) == [DependencySpec("six", "1.16.0")]


class TestVersionHelpers:
    """Tests for requirement strings and version matching."""

    def test_requirement_string(self):
        assert requirement_string("numpy", "1.26.4") == "numpy==1.26.4"
        assert requirement_string("numpy", ">=1.20") == "numpy>=1.20"
        assert requirement_string("numpy", "") == "numpy"

    def test_version_matches(self):
        assert version_matches("1.26.4", "1.26.4")
        assert not version_matches("1.26.3", "1.26.4")
        assert version_matches("2.1", ">=2.0")
        assert not version_matches("1.9", ">=2.0")
        assert version_matches("0.1", "")


class TestSelectWheel:
    """Tests for platform-tag based wheel selection."""

    def test_most_specific_tag_wins(self, tmp_path, build_wheel):
        """Test that the earliest matching tag in preference order is chosen."""
        build_wheel(tmp_path, "fast", "1.0", tag="py3-none-any")
        build_wheel(tmp_path, "fast", "1.0", tag="cp311-cp311-manylinux_2_17_x86_64")

        archive, version, tag = select_wheel(tmp_path, DependencySpec("fast", "1.0"), PLATFORM_TAGS)

        assert tag == "cp311-cp311-manylinux_2_17_x86_64"
        assert version == "1.0"
        assert "manylinux" in archive.name

    def test_falls_back_to_least_specific(self, tmp_path, build_wheel):
        build_wheel(tmp_path, "fast", "1.0", tag="cp39-cp39-win_amd64")
        build_wheel(tmp_path, "fast", "1.0", tag="py3-none-any")

        _, _, tag = select_wheel(tmp_path, DependencySpec("fast", "1.0"), PLATFORM_TAGS)

        assert tag == "py3-none-any"

    def test_incompatible_only(self, tmp_path, build_wheel):
        build_wheel(tmp_path, "fast", "1.0", tag="cp39-cp39-win_amd64")

        assert select_wheel(tmp_path, DependencySpec("fast", "1.0"), PLATFORM_TAGS) is None

    def test_newest_matching_version(self, tmp_path, build_wheel):
        build_wheel(tmp_path, "lib", "1.0")
        build_wheel(tmp_path, "lib", "1.5")
        build_wheel(tmp_path, "lib", "2.0")

        _, version, _ = select_wheel(tmp_path, DependencySpec("lib", "<2.0"), PLATFORM_TAGS)

        assert version == "1.5"


class TestDependencyResolver:
    """Tests for DependencyResolver.resolve."""

    def test_transitive_resolution_with_cycle(self, wheelhouse, make_resolver):
        """Test that alpha -> beta -> alpha terminates and extras are ignored."""
        fetcher = CountingFetcher(wheelhouse)
        resolver = make_resolver(fetcher)

        result = resolver.resolve([DependencySpec("alpha", "1.0")])

        assert result.ok
        assert [d.package_id for d in result] == ["alpha", "beta"]
        assert [d.version for d in result] == ["1.0", "2.1"]
        assert fetcher.calls == [("alpha", "1.0"), ("beta", ">=2.0")]

    def test_extracted_binaries(self, wheelhouse, make_resolver):
        """Test that the import root is surfaced under the selected tag."""
        resolver = make_resolver(CountingFetcher(wheelhouse))

        result = resolver.resolve([DependencySpec("gamma", "0.1")])

        dependency = result.resolved[0]
        assert list(dependency.binaries) == ["py3-none-any"]
        assert dependency.root in result.binary_paths()
        assert (dependency.root / "gamma" / "__init__.py").is_file()

    def test_native_files_collected(self, tmp_path, make_resolver, build_wheel):
        root = tmp_path / "native-house"
        build_wheel(root, "fast", "1.0", tag="cp311-cp311-manylinux_2_17_x86_64", native=True)
        resolver = make_resolver(CountingFetcher(root))

        dependency = resolver.resolve([DependencySpec("fast", "1.0")]).resolved[0]

        natives = dependency.binaries["cp311-cp311-manylinux_2_17_x86_64"][1:]
        assert [p.name for p in natives] == ["_speedups.so"]
        assert natives[0].parent == dependency.root / "fast"

    def test_never_fetches_same_package_twice(self, wheelhouse, make_resolver):
        """Test that repeated resolutions reuse the process cache."""
        fetcher = CountingFetcher(wheelhouse)
        cache = KeyedBuildCache("shared")
        first = make_resolver(fetcher, cache=cache)
        second = make_resolver(fetcher, cache=cache)

        first.resolve([DependencySpec("gamma", "0.1")])
        first.resolve([DependencySpec("gamma", "0.1")])
        second.resolve([DependencySpec("gamma", "0.1"), DependencySpec("alpha", "1.0")])

        assert fetcher.calls.count(("gamma", "0.1")) == 1
        assert fetcher.calls.count(("alpha", "1.0")) == 1

    def test_concurrent_resolution_fetches_once(self, wheelhouse, make_resolver):
        fetcher = CountingFetcher(wheelhouse, delay=0.05)
        resolver = make_resolver(fetcher)

        threads = [
            threading.Thread(target=resolver.resolve, args=([DependencySpec("gamma", "0.1")],))
            for _ in range(6)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert fetcher.calls == [("gamma", "0.1")]

    def test_failure_is_reported_not_raised(self, wheelhouse, make_resolver):
        """Test that an unavailable package is returned as a failure and cached."""
        fetcher = CountingFetcher(wheelhouse, missing={"ghost"})
        resolver = make_resolver(fetcher)

        result = resolver.resolve([DependencySpec("ghost", "9.9"), DependencySpec("gamma", "0.1")])
        again = resolver.resolve([DependencySpec("ghost", "9.9")])

        assert not result.ok
        assert [d.package_id for d in result] == ["gamma"]
        assert isinstance(result.failures[0], DependencyFailure)
        assert "not found" in result.failures[0].reason
        assert again.failures == result.failures
        assert fetcher.calls.count(("ghost", "9.9")) == 1

    def test_no_compatible_wheel(self, tmp_path, make_resolver, build_wheel):
        root = tmp_path / "house"
        build_wheel(root, "winonly", "1.0", tag="cp39-cp39-win_amd64")
        resolver = make_resolver(CountingFetcher(root))

        result = resolver.resolve([DependencySpec("winonly", "1.0")])

        assert "no wheel compatible" in result.failures[0].reason

    def test_fetch_timeout(self, wheelhouse, make_resolver):
        """Test that a stuck fetch becomes a failure after the timeout."""
        resolver = make_resolver(CountingFetcher(wheelhouse, delay=1.0), fetch_timeout=0.05)

        result = resolver.resolve([DependencySpec("gamma", "0.1")])

        assert "timed out" in result.failures[0].reason

    def test_corrupt_archive(self, tmp_path, make_resolver):
        root = tmp_path / "house"
        root.mkdir()
        (root / "broken-1.0-py3-none-any.whl").write_bytes(b"not a zip")
        resolver = make_resolver(CountingFetcher(root))

        result = resolver.resolve([DependencySpec("broken", "1.0")])

        assert "corrupt" in result.failures[0].reason


class TestWheelhouseFetcher:
    """Tests for the local wheelhouse fetcher."""

    def test_fetch(self, wheelhouse):
        assert WheelhouseFetcher(wheelhouse).fetch("gamma", "0.1") == wheelhouse

    def test_missing_package(self, wheelhouse):
        with pytest.raises(PackageFetchError):
            WheelhouseFetcher(wheelhouse).fetch("gamma", "9.0")


class TestReadRequiresDist:
    def test_extras_and_markers_skipped(self, tmp_path):
        root = tmp_path / "pkg"
        (root / "pkg-1.0.dist-info").mkdir(parents=True)
        (root / "pkg-1.0.dist-info" / "METADATA").write_text(
            "Name: pkg\n"
            "Requires-Dist: numpy>=1.20\n"
            'Requires-Dist: sphinx; extra == "docs"\n'
            'Requires-Dist: pywin32; sys_platform == "nonexistent"\n'
        )

        assert read_requires_dist(root) == [DependencySpec("numpy", ">=1.20")]
