"""
Package fetchers.

A fetcher is the only component that talks to a package repository. The
resolver asks it for one (package, version) at a time and receives a local
directory containing the downloaded wheel archive(s); network transport,
credentials and mirrors stay behind this boundary.
"""

import subprocess
import sys
from pathlib import Path
from typing import List, Optional, Protocol, Union, runtime_checkable

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import InvalidWheelFilename, canonicalize_name, parse_wheel_filename
from packaging.version import InvalidVersion, Version

from mlpredict.core.logging import get_logger
from mlpredict.errors import PackageFetchError

logger = get_logger(__name__)


@runtime_checkable
class PackageFetcher(Protocol):
    """Capability consumed by :class:`mlpredict.runtime.DependencyResolver`."""

    def fetch(self, package_id: str, version: str) -> Path:
        """Download ``package_id`` at ``version`` and return the directory holding it.

        Args:
            package_id: Distribution name as declared.
            version: Exact version, a specifier such as ``">=1.2"``, or ``""`` for any.

        Raises:
            PackageFetchError: If the package cannot be obtained.
        """
        ...


def requirement_string(package_id: str, version: str) -> str:
    """Build a requirement line, e.g. ``("numpy", "1.26.4") -> "numpy==1.26.4"``."""
    version = (version or "").strip()
    if not version:
        return package_id
    if version[0].isdigit():
        return f"{package_id}=={version}"
    return f"{package_id}{version}"


def version_matches(candidate: str, version: str) -> bool:
    """Check a concrete wheel version against an exact version or a specifier."""
    version = (version or "").strip()
    if not version:
        return True
    try:
        parsed = Version(candidate)
    except InvalidVersion:
        return False
    if version[0].isdigit():
        try:
            return parsed == Version(version)
        except InvalidVersion:
            return candidate == version
    try:
        return SpecifierSet(version).contains(parsed, prereleases=True)
    except InvalidSpecifier:
        return False


class PipDownloadFetcher:
    """Fetch wheels from a package index with ``pip download``.

    Each package lands in its own subdirectory of ``download_dir`` so that
    archives from unrelated packages never mix.
    """

    def __init__(
        self,
        download_dir: Union[str, Path],
        index_url: Optional[str] = None,
        timeout: float = 120.0,
    ):
        """Initialize the fetcher.

        Args:
            download_dir: Root directory for downloaded archives.
            index_url: Package index URL; pip's configured index when None.
            timeout: Seconds before the pip process is killed.
        """
        self.download_dir = Path(download_dir)
        self.index_url = index_url
        self.timeout = timeout

    def build_command(self, package_id: str, version: str, dest: Path) -> List[str]:
        command = [
            sys.executable, "-m", "pip", "download",
            "--no-deps",
            "--only-binary=:all:",
            "--disable-pip-version-check",
            "--quiet",
            "--dest", str(dest),
        ]
        if self.index_url:
            command += ["--index-url", self.index_url]
        command.append(requirement_string(package_id, version))
        return command

    def fetch(self, package_id: str, version: str) -> Path:
        dest = self.download_dir / f"{canonicalize_name(package_id)}-{version or 'any'}"
        dest.mkdir(parents=True, exist_ok=True)
        command = self.build_command(package_id, version, dest)
        logger.debug(f"Running: {' '.join(command)}")
        try:
            subprocess.run(command, check=True, capture_output=True, text=True, timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            raise PackageFetchError(
                f"pip download of {requirement_string(package_id, version)} timed out after {self.timeout}s"
            ) from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or "").strip().splitlines()
            reason = detail[-1] if detail else f"exit code {e.returncode}"
            raise PackageFetchError(
                f"pip download of {requirement_string(package_id, version)} failed: {reason}"
            ) from e
        except OSError as e:
            raise PackageFetchError(f"Cannot run pip: {e}") from e
        return dest


class WheelhouseFetcher:
    """Serve packages from a local directory of wheel files.

    Used on hosts without network access and in tests.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def fetch(self, package_id: str, version: str) -> Path:
        if not self.root.is_dir():
            raise PackageFetchError(f"Wheelhouse {self.root} does not exist")
        wanted = canonicalize_name(package_id)
        for archive in self.root.glob("*.whl"):
            try:
                name, found_version, _, _ = parse_wheel_filename(archive.name)
            except InvalidWheelFilename:
                continue
            if name == wanted and version_matches(str(found_version), version):
                return self.root
        raise PackageFetchError(
            f"No wheel for {requirement_string(package_id, version)} in {self.root}"
        )
